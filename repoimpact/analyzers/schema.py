"""Detector for persistence technology, tables and migrations."""

from __future__ import annotations

import re
from typing import Iterable, List

from .base import Detector
from .strategies import (
    ContentExtractor,
    FileReader,
    MarkerContext,
    MarkerRule,
    dependency,
    file_name_suffix,
    file_named,
    first_match,
    suffix,
)
from .utils import dependency_names
from ..models import DatabaseFacts, FileMeta, RepoManifest

_PRISMA_MODEL = re.compile(r"^\s*model\s+(\w+)\s*\{", re.MULTILINE)
_SQL_CREATE_TABLE = re.compile(
    r"CREATE\s+(?:TEMP(?:ORARY)?\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?"
    r"(?:[`\"\[]?\w+[`\"\]]?\.)?[`\"\[]?(\w+)[`\"\]]?",
    re.IGNORECASE,
)
_DJANGO_MODEL = re.compile(r"^class\s+(\w+)\(\s*(?:models\.)?Model\s*\)\s*:", re.MULTILINE)
_SQLALCHEMY_TABLENAME = re.compile(r"__tablename__\s*=\s*['\"](\w+)['\"]")
_SQLALCHEMY_MODEL = re.compile(r"^class\s+(\w+)\(\s*(?:Base|db\.Model|SQLModel)\b[^)]*\)\s*:", re.MULTILINE)
_MONGOOSE_MODEL = re.compile(r"mongoose\.model\(\s*['\"](\w+)['\"]")

_JS_SUFFIXES = (".js", ".ts", ".mjs", ".cjs")
_MIGRATION_DIRS = ("migrations", "alembic/versions")

DATABASE_RULES = (
    MarkerRule("prisma", dependency("prisma", "@prisma/client")),
    MarkerRule("sequelize", dependency("sequelize")),
    MarkerRule("typeorm", dependency("typeorm")),
    MarkerRule("mongoose", dependency("mongoose")),
    MarkerRule("django", dependency("django")),
    MarkerRule("sqlalchemy", dependency("sqlalchemy", "flask-sqlalchemy", "sqlmodel")),
    MarkerRule("knex", dependency("knex")),
    MarkerRule("prisma", file_named("schema.prisma")),
    MarkerRule("typeorm", file_name_suffix(".entity.ts")),
    MarkerRule("sql", suffix(".sql")),
)


def _stem(name: str) -> str:
    return name.split(".", 1)[0]


def _in_dir(directory: str):
    return lambda file: directory in file.path.split("/")[:-1]


def _prisma_models(file: FileMeta, text: str) -> Iterable[str]:
    return _PRISMA_MODEL.findall(text)


def _sequelize_models(file: FileMeta, text: str) -> Iterable[str]:
    if "sequelize.define" in text or "DataTypes" in text:
        return [_stem(file.name)]
    return []


def _sql_tables(file: FileMeta, text: str) -> Iterable[str]:
    return _SQL_CREATE_TABLE.findall(text)


def _django_models(file: FileMeta, text: str) -> Iterable[str]:
    if "from django" not in text and "models.Model" not in text:
        return []
    return _DJANGO_MODEL.findall(text)


def _sqlalchemy_models(file: FileMeta, text: str) -> Iterable[str]:
    names = _SQLALCHEMY_TABLENAME.findall(text)
    if names:
        return names
    if "sqlalchemy" not in text.lower() and "sqlmodel" not in text.lower():
        return []
    return _SQLALCHEMY_MODEL.findall(text)


def _mongoose_models(file: FileMeta, text: str) -> Iterable[str]:
    return _MONGOOSE_MODEL.findall(text)


EXTRACTORS = (
    ContentExtractor("prisma", _prisma_models, suffixes=(".prisma",)),
    ContentExtractor("sequelize", _sequelize_models, suffixes=_JS_SUFFIXES, where=_in_dir("models")),
    ContentExtractor("sql", _sql_tables, suffixes=(".sql",)),
    ContentExtractor(
        "django",
        _django_models,
        suffixes=(".py",),
        where=lambda file: file.name == "models.py" or "models" in file.path.split("/")[:-1],
    ),
    ContentExtractor("sqlalchemy", _sqlalchemy_models, suffixes=(".py",)),
    ContentExtractor("mongoose", _mongoose_models, suffixes=_JS_SUFFIXES),
)


class SchemaDetector(Detector):
    """Lists table and model names from ORM schemas, entity files and raw SQL."""

    name = "database"
    section = "database"

    def detect(self, manifest: RepoManifest, reader: FileReader) -> DatabaseFacts:
        files = [file for file in manifest.files if file.role != "docs"]
        found = reader.collect(files, EXTRACTORS)

        entities = [
            file.name[: -len(".entity.ts")] for file in files if file.name.endswith(".entity.ts")
        ]
        tables: List[str] = [
            *found["prisma"],
            *found["sequelize"],
            *entities,
            *found["django"],
            *found["sqlalchemy"],
            *found["mongoose"],
        ]
        schemas = found["sql"]

        context = MarkerContext.build(manifest, dependency_names(reader))
        db_type = first_match(DATABASE_RULES, context)
        if db_type in (None, "sql") and found["sequelize"]:
            db_type = "sequelize"

        return DatabaseFacts(
            type=db_type,
            tables=[*tables, *schemas],
            migrations=self._migrations(files),
            schemas=schemas,
        )

    def empty(self) -> DatabaseFacts:
        return DatabaseFacts()

    @staticmethod
    def _migrations(files: Iterable[FileMeta]) -> List[str]:
        migrations: List[str] = []
        for file in files:
            directory = file.path.rsplit("/", 1)[0] if "/" in file.path else ""
            if any(f"/{marker}/" in f"/{directory}/" for marker in _MIGRATION_DIRS):
                migrations.append(file.path)
        return migrations
