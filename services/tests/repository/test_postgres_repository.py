"""Tests for the SQLAlchemy repository against a mocked AsyncSession."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from harbormaster.db.models import Infra, Operation
from harbormaster.errors import InternalError, NotFoundError
from harbormaster.repository.postgres import SQLAlchemyInfraRepository
from harbormaster.repository.protocol import InfraRepository


def _db(scalar=None, scalars: list | None = None) -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = scalars or []
    db.execute.return_value = result
    return db


class TestReads:
    def test_satisfies_protocol(self):
        assert isinstance(SQLAlchemyInfraRepository(_db()), InfraRepository)

    async def test_read_infra_found(self):
        infra = Infra(id=9, project_id=4, kind="eks", suffix="ab12cd")
        repo = SQLAlchemyInfraRepository(_db(scalar=infra))

        assert await repo.read_infra_by_id(4, 9) is infra

    async def test_read_infra_missing(self):
        repo = SQLAlchemyInfraRepository(_db(scalar=None))

        with pytest.raises(NotFoundError):
            await repo.read_infra_by_id(4, 9)

    async def test_latest_operation_missing(self):
        repo = SQLAlchemyInfraRepository(_db(scalar=None))

        with pytest.raises(NotFoundError):
            await repo.get_latest_operation(Infra(id=9, project_id=4))

    async def test_list_operations(self):
        ops = [Operation(uid="a" * 20), Operation(uid="b" * 20)]
        repo = SQLAlchemyInfraRepository(_db(scalars=ops))

        assert await repo.list_operations(Infra(id=9, project_id=4)) == ops

    async def test_storage_failure_is_internal(self):
        db = _db()
        db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection lost"))
        repo = SQLAlchemyInfraRepository(db)

        with pytest.raises(InternalError):
            await repo.read_cluster_by_id(4, 1)


class TestWrites:
    async def test_create_infra_links_operation_and_commits(self):
        db = _db()
        infra = Infra(project_id=4, kind="eks", suffix="ab12cd")
        operation = Operation(uid="a" * 20, type="create")

        async def assign_id():
            infra.id = 9

        db.flush.side_effect = assign_id
        repo = SQLAlchemyInfraRepository(db)

        await repo.create_infra(infra, operation)

        assert operation.infra_id == 9
        assert db.add.call_count == 2
        db.commit.assert_awaited_once()

    async def test_update_operation_commits(self):
        db = _db()
        repo = SQLAlchemyInfraRepository(db)
        operation = Operation(uid="a" * 20, status="completed")

        await repo.update_operation(operation)

        db.add.assert_called_once_with(operation)
        db.commit.assert_awaited_once()

    async def test_commit_failure_rolls_back(self):
        db = _db()
        db.commit.side_effect = SQLAlchemyError("deadlock")
        repo = SQLAlchemyInfraRepository(db)

        with pytest.raises(InternalError):
            await repo.update_infra(Infra(id=9, project_id=4))

        db.rollback.assert_awaited_once()
