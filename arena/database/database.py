from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import select, event, func
from contextlib import asynccontextmanager

from arena.config import Config
from arena.database.models import Base, User, Game, Submission, Grading, Tournament
from arena.utils.logger import setup_logger

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = Config.get_async_database_url(database_url)
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        self.engine = create_async_engine(
            self.database_url,
            echo=Config.DEBUG,
            future=True
        )

        if self.engine.dialect.name == 'sqlite':
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @property
    def session_factory(self):
        """Session factory handed to services"""
        return self.async_session

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # User operations
    async def create_user(self, username: str, email: str) -> User:
        """Create a new user"""
        async with self.get_session() as session:
            user = User(username=username, email=email.strip().lower())
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self.get_session() as session:
            return await session.get(User, user_id)

    # Game operations
    async def create_game(self, name: str, summary: str = None, batch_size: int = 100) -> Game:
        """Create a new game"""
        async with self.get_session() as session:
            game = Game(name=name, summary=summary, batch_size=batch_size)
            session.add(game)
            await session.commit()
            await session.refresh(game)
            return game

    # Submission operations
    async def create_submission(self, user_id: int, game_id: int, title: str, code: str,
                                active: bool = False, passed_evaluation: Optional[bool] = None) -> Submission:
        """Insert a submission as-is, bypassing evaluation (seeding and imports)"""
        async with self.get_session() as session:
            submission = Submission(
                user_id=user_id,
                game_id=game_id,
                title=title,
                code=code,
                active=active,
                passed_evaluation=passed_evaluation
            )
            session.add(submission)
            await session.commit()
            await session.refresh(submission)
            return submission

    async def get_submission(self, submission_id: int) -> Optional[Submission]:
        async with self.get_session() as session:
            return await session.get(Submission, submission_id)

    # Counters
    async def count_gradings(self) -> int:
        async with self.get_session() as session:
            return await session.scalar(select(func.count(Grading.id)))

    async def count_tournaments(self) -> int:
        async with self.get_session() as session:
            return await session.scalar(select(func.count(Tournament.id)))
