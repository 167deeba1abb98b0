import os
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, event, func
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from boardevents.db import Base
from boardevents.models import (
    Access,
    Account,
    Board,
    Card,
    CardStatus,
    Involvement,
    User,
    UserRole,
    Watch,
)
from boardevents.tasks.webhooks import deliver_webhook


def _next_card_number(db_session, account_id) -> int:
    current = (
        db_session.query(func.max(Card.number))
        .filter(Card.account_id == account_id)
        .scalar()
    )
    return (current or 0) + 1


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # pysqlite needs to leave transaction control to SQLAlchemy for
        # SAVEPOINT to work.
        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_connection, _connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def fanout():
    """Post-commit fanout scheduling, captured instead of sent to the broker."""
    with patch("boardevents.services.events.store.schedule_fanout") as scheduled:
        yield scheduled


@pytest.fixture(autouse=True)
def queued_deliveries():
    with patch.object(deliver_webhook, "delay") as delay:
        yield delay


@pytest.fixture()
def make_user(db_session):
    def _make_user(account, name, role=UserRole.member):
        user = User(account_id=account.id, name=name, role=role)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def make_card(db_session):
    def _make_card(board, creator, title="Fix the login page", published=True):
        card = Card(
            account_id=board.account_id,
            board=board,
            creator=creator,
            number=_next_card_number(db_session, board.account_id),
            title=title,
            status=CardStatus.published if published else CardStatus.drafted,
        )
        db_session.add(card)
        db_session.commit()
        return card

    return _make_card


@pytest.fixture()
def watch_card(db_session):
    def _watch_card(card, user, watching=True):
        db_session.add(
            Watch(account_id=card.account_id, card=card, user=user, watching=watching)
        )
        db_session.commit()

    return _watch_card


@pytest.fixture()
def account(db_session):
    account = Account(name="Acme")
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture()
def alice(make_user, account):
    return make_user(account, "Alice")


@pytest.fixture()
def bob(make_user, account):
    return make_user(account, "Bob")


@pytest.fixture()
def carol(make_user, account):
    return make_user(account, "Carol")


@pytest.fixture()
def dave(make_user, account):
    return make_user(account, "Dave")


@pytest.fixture()
def board(db_session, account, alice, bob, carol, dave):
    """Board watched by Alice, Bob and Dave; Carol only has access."""
    board = Board(account_id=account.id, creator_id=alice.id, name="Engineering")
    db_session.add(board)
    db_session.flush()
    for user, involvement in (
        (alice, Involvement.watching),
        (bob, Involvement.watching),
        (carol, Involvement.access_only),
        (dave, Involvement.watching),
    ):
        db_session.add(
            Access(
                account_id=account.id,
                board_id=board.id,
                user_id=user.id,
                involvement=involvement,
            )
        )
    db_session.commit()
    return board


@pytest.fixture()
def other_board(db_session, account, alice):
    board = Board(account_id=account.id, creator_id=alice.id, name="Design")
    db_session.add(board)
    db_session.commit()
    return board


@pytest.fixture()
def card(make_card, board, alice):
    return make_card(board, alice)


@pytest.fixture()
def draft_card(make_card, board, alice):
    return make_card(board, alice, title="Half-baked idea", published=False)
