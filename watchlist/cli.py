# Maintenance commands run against the configured database
# watchlist/cli.py

import argparse
import asyncio
import logging
import os

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

# Environment must be loaded before the settings module is imported
load_dotenv()

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(),
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("watchlist.cli")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="watchlist-admin", description="Movie Watchlist maintenance commands.")
    sub = p.add_subparsers(dest="command", required=True)

    promote = sub.add_parser("make-admin", help="Give an existing user the admin role.")
    promote.add_argument("username", help="Exact name of the user to promote.")

    sub.add_parser("ping", help="Check that MongoDB is reachable.")
    return p


def _connect() -> AsyncIOMotorClient:
    from watchlist.core.config import settings

    uri = settings.MONGODB_URI.get_secret_value()
    logger.info(f"Connecting to MongoDB at {uri[:15]}...")
    return AsyncIOMotorClient(uri, serverSelectionTimeoutMS=5000)


async def _make_admin(username: str) -> int:
    from watchlist.api.deps import resolve_database
    from watchlist.services.auth_service import AuthService, AuthServiceError

    client = _connect()
    try:
        result = await AuthService(db=resolve_database(client)).make_admin(username)
    except AuthServiceError as e:
        logger.error(e.message)
        return 1
    except PyMongoError as e:
        logger.error(f"Database error while promoting '{username}': {e}", exc_info=True)
        return 2
    finally:
        client.close()

    print(result.message)
    return 0


async def _ping() -> int:
    from watchlist.api.deps import resolve_database

    client = _connect()
    try:
        await client.admin.command('ping')
        db = resolve_database(client)
        collections = sorted(await db.list_collection_names())
    except PyMongoError as e:
        logger.error(f"MongoDB is not reachable: {e}")
        return 2
    finally:
        client.close()

    print(f"MongoDB OK (database '{db.name}')")
    for name in collections:
        print(f"  - {name}")
    return 0


def main() -> None:
    args = _build_parser().parse_args()
    if args.command == "make-admin":
        raise SystemExit(asyncio.run(_make_admin(args.username)))
    raise SystemExit(asyncio.run(_ping()))


if __name__ == "__main__":
    main()
