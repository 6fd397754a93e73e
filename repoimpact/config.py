"""Configuration loading for repoimpact (.repoimpact.yml)."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".repoimpact.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class AnalysisConfig:
    """Detector pass limits and exclusions."""

    bounded: str = "auto"
    large_repo_threshold: int = 5000
    max_files_per_category: int = 500
    max_file_size: int = 1024 * 1024
    sample_rate: float = 1.0
    max_depth: Optional[int] = None
    max_files: Optional[int] = None
    exclude_paths: List[str] = field(default_factory=list)

    def fingerprint(self) -> str:
        """Digest of the settings that change what a detector pass reads."""
        payload = json.dumps(asdict(self), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


@dataclass
class CacheConfig:
    """Analysis cache lifetime and optional disk location."""

    ttl_seconds: float = 3600.0
    path: Optional[Path] = None


@dataclass
class EstimatorConfig:
    """Effort bucket boundaries (score < s → S, < m → M, < l → L, else XL)."""

    s: float = 10.0
    m: float = 25.0
    l: float = 50.0


@dataclass
class RiskConfig:
    """Keyword triggers used by the risk rules and test-area selection."""

    tenant_keyword: str = "tenant"
    multi_tenant_keyword: str = "multi-tenant"
    compliance_tags: List[str] = field(default_factory=lambda: ["GDPR", "HIPAA", "CCPA"])
    breaking_change_keyword: str = "no breaking api"


@dataclass
class RunsConfig:
    """Retention of finished pipeline runs."""

    ttl_seconds: Optional[float] = None


@dataclass
class RepoImpactConfig:
    """Represents the settings defined in .repoimpact.yml."""

    root: Path
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    runs: RunsConfig = field(default_factory=RunsConfig)

    @property
    def run_ttl_seconds(self) -> float:
        if self.runs.ttl_seconds is not None:
            return self.runs.ttl_seconds
        return self.cache.ttl_seconds


def load_config(config_path: Path) -> RepoImpactConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return RepoImpactConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    analysis = AnalysisConfig()
    analysis_data = _as_dict(data.get("analysis"))
    if analysis_data:
        bounded = (_as_str(analysis_data.get("bounded")) or analysis.bounded).lower()
        if bounded in {"true", "yes"}:
            bounded = "always"
        elif bounded in {"false", "no"}:
            bounded = "never"
        if bounded not in {"auto", "always", "never"}:
            raise ConfigError(f"analysis.bounded must be auto, always or never (got {bounded!r})")
        analysis.bounded = bounded
        analysis.large_repo_threshold = _positive_int(
            analysis_data.get("large_repo_threshold"), analysis.large_repo_threshold
        )
        analysis.max_files_per_category = _positive_int(
            analysis_data.get("max_files_per_category"), analysis.max_files_per_category
        )
        analysis.max_file_size = _positive_int(
            analysis_data.get("max_file_size"), analysis.max_file_size
        )
        sample_rate = _as_float(analysis_data.get("sample_rate"))
        if sample_rate is not None:
            if not 0.0 < sample_rate <= 1.0:
                raise ConfigError("analysis.sample_rate must be in (0, 1]")
            analysis.sample_rate = sample_rate
        analysis.max_depth = _as_int(analysis_data.get("max_depth"))
        analysis.max_files = _as_int(analysis_data.get("max_files"))
        analysis.exclude_paths = _as_str_list(analysis_data.get("exclude_paths"))

    cache = CacheConfig()
    cache_data = _as_dict(data.get("cache"))
    if cache_data:
        ttl = _as_float(cache_data.get("ttl_seconds"))
        if ttl is not None:
            cache.ttl_seconds = max(ttl, 0.0)
        path_str = _as_str(cache_data.get("path"))
        cache.path = root / path_str if path_str else None

    estimator = EstimatorConfig()
    thresholds = _as_dict(_as_dict(data.get("estimator")).get("thresholds"))
    if thresholds:
        estimator.s = _as_float(thresholds.get("s")) or estimator.s
        estimator.m = _as_float(thresholds.get("m")) or estimator.m
        estimator.l = _as_float(thresholds.get("l")) or estimator.l
        if not 0 < estimator.s < estimator.m < estimator.l:
            raise ConfigError("estimator.thresholds must be positive and strictly increasing")

    risk = RiskConfig()
    risk_data = _as_dict(data.get("risk"))
    if risk_data:
        risk.tenant_keyword = _as_str(risk_data.get("tenant_keyword")) or risk.tenant_keyword
        risk.multi_tenant_keyword = (
            _as_str(risk_data.get("multi_tenant_keyword")) or risk.multi_tenant_keyword
        )
        if "compliance_tags" in risk_data:
            risk.compliance_tags = _as_str_list(risk_data.get("compliance_tags"))
        risk.breaking_change_keyword = (
            _as_str(risk_data.get("breaking_change_keyword")) or risk.breaking_change_keyword
        )

    runs = RunsConfig()
    runs_data = _as_dict(data.get("runs"))
    if runs_data:
        runs.ttl_seconds = _as_float(runs_data.get("ttl_seconds"))

    return RepoImpactConfig(
        root=root,
        analysis=analysis,
        cache=cache,
        estimator=estimator,
        risk=risk,
        runs=runs,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _positive_int(value: Any, default: int) -> int:
    parsed = _as_int(value)
    if parsed is None or parsed <= 0:
        return default
    return parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []
