"""Tests for the schema detector."""

from __future__ import annotations

import json

from repoimpact.analyzers.schema import SchemaDetector
from tests._fixtures.repo_builder import RepoBuilder


def _detect(repo_builder: RepoBuilder):
    return SchemaDetector().detect(repo_builder.scan(), repo_builder.reader())


def test_prisma_models_become_tables(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": json.dumps({"dependencies": {"@prisma/client": "^5.0.0"}}),
            "prisma/schema.prisma": """
                datasource db {
                  provider = "postgresql"
                  url      = env("DATABASE_URL")
                }

                model User {
                  id    Int    @id
                  email String @unique
                }

                model Order {
                  id Int @id
                }
            """,
            "prisma/migrations/20240101_init/migration.sql": """
                CREATE TABLE "User" ("id" SERIAL PRIMARY KEY);
            """,
        }
    )

    facts = _detect(repo_builder)

    assert facts.type == "prisma"
    assert facts.tables[:2] == ["User", "Order"]
    assert facts.tables.count("User") == 1
    assert facts.migrations == ["prisma/migrations/20240101_init/migration.sql"]


def test_sql_create_table_statements(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "db/schema.sql": """
                CREATE TABLE users (id INT PRIMARY KEY);
                create table if not exists public.orders (id int);
                CREATE TEMPORARY TABLE `scratch` (id int);
                CREATE TABLE users (id INT PRIMARY KEY);
            """,
        }
    )

    facts = _detect(repo_builder)

    assert facts.type == "sql"
    assert facts.schemas == ["users", "orders", "scratch"]
    assert facts.tables == ["users", "orders", "scratch"]


def test_sequelize_models_directory(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/models/user.js": """
                module.exports = (sequelize, DataTypes) =>
                  sequelize.define('User', { name: DataTypes.STRING });
            """,
            "src/models/index.js": "module.exports = {};\n",
        }
    )

    facts = _detect(repo_builder)

    assert facts.type == "sequelize"
    assert facts.tables == ["user"]


def test_typeorm_entities_and_sqlalchemy_models(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/user.entity.ts": "@Entity() export class User {}\n",
            "app/models.py": """
                from sqlalchemy.orm import declarative_base

                Base = declarative_base()

                class Invoice(Base):
                    __tablename__ = "invoices"
            """,
            "alembic/versions/0001_init.py": "revision = '0001'\n",
        }
    )

    facts = _detect(repo_builder)

    assert facts.type == "typeorm"
    assert "user" in facts.tables
    assert "invoices" in facts.tables
    assert facts.migrations == ["alembic/versions/0001_init.py"]


def test_django_and_mongoose_models(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "shop/models.py": """
                from django.db import models

                class Product(models.Model):
                    name = models.CharField(max_length=50)
            """,
            "server/cart.js": "module.exports = mongoose.model('Cart', cartSchema);\n",
        }
    )

    facts = _detect(repo_builder)

    assert "Product" in facts.tables
    assert "Cart" in facts.tables


def test_repository_without_persistence(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"README.md": "# Nothing here\n"})

    facts = _detect(repo_builder)

    assert facts.type is None
    assert facts.tables == []
    assert facts.migrations == []
