from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from myspace_api.config import settings
import logging

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.sqlalchemy_database_url

# Log the connection string with the password masked
masked_url = make_url(SQLALCHEMY_DATABASE_URL).render_as_string(hide_password=True)
logger.info(f"SQLAlchemy DB URL: {masked_url}")

engine = create_async_engine(
    SQLALCHEMY_DATABASE_URL,
    pool_pre_ping=True
    )

AsyncSessionLocal = async_sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()
