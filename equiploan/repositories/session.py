# equiploan/repositories/session.py
from contextlib import asynccontextmanager

import motor.motor_asyncio
from loguru import logger
from pymongo.errors import PyMongoError

from equiploan.core.errors import TransactionConflictError
from equiploan.repositories.base import TransactionManager

WRITE_CONFLICT = 112


class MongoTransactionManager(TransactionManager):
    """Multi-document transactions; requires MongoDB running as a replica set."""

    def __init__(self, client: motor.motor_asyncio.AsyncIOMotorClient):
        self.client = client

    @asynccontextmanager
    async def transaction(self):
        async with await self.client.start_session() as session:
            try:
                async with session.start_transaction():
                    yield session
            except PyMongoError as e:
                if e.has_error_label("TransientTransactionError") or getattr(e, "code", None) == WRITE_CONFLICT:
                    logger.warning(f"Transaction aborted by a concurrent write: {e}")
                    raise TransactionConflictError() from e
                raise
