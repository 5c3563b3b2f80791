import argparse
import getpass
import logging
import sys

from djrequests.config import get_settings
from djrequests.database.dynamodb import get_db_connection
from djrequests.errors import DomainError
from djrequests.schemas.dj import DJCreate
from djrequests.services.dj_service import DJService

logger = logging.getLogger("create_dj")


def main():
    parser = argparse.ArgumentParser(description="Register a DJ account")
    parser.add_argument("email")
    parser.add_argument("--venmo-username")
    parser.add_argument(
        "--password", help="Prompted for when omitted (at least 6 characters)"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    password = args.password or getpass.getpass("Password: ")
    dj_data = DJCreate(
        email=args.email, password=password, venmo_username=args.venmo_username
    )

    service = DJService(get_db_connection(), get_settings().table_name)
    try:
        dj = service.create_dj(dj_data)
    except DomainError as e:
        logger.error(e.message)
        sys.exit(1)
    logger.info("Created DJ %s (%s)", dj.email, dj.id)


if __name__ == "__main__":
    main()
