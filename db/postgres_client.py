import asyncpg # type: ignore

from utils.config import AppConfig


async def get_db_pool():
    if AppConfig.DATABASE_URL:
        return await asyncpg.create_pool(dsn=AppConfig.DATABASE_URL)

    return await asyncpg.create_pool(
        user=AppConfig.POSTGRES_USER,
        password=AppConfig.POSTGRES_PASSWORD,
        database=AppConfig.POSTGRES_DB,
        host=AppConfig.POSTGRES_HOST,
        port=AppConfig.POSTGRES_PORT,
    )
