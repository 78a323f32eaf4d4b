# (c) Copyright Datacraft, 2026
from functools import lru_cache
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import sessionmaker, Session as SQLAlchemySession

from definvoice_auth.config import get_settings


@lru_cache()
def get_engine() -> Engine:
	settings = get_settings()
	return create_engine(settings.db_url, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
	return sessionmaker(engine, expire_on_commit=False)


def get_db(request: Request) -> Generator[SQLAlchemySession, None, None]:
	"""FastAPI dependency for database sessions."""
	db = request.app.state.session_factory()
	try:
		yield db
	finally:
		db.close()
