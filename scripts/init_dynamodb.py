import argparse
import logging

from djrequests.database.dynamodb import create_table_if_not_exists, delete_table


def main():
    parser = argparse.ArgumentParser(description="Create or reset the DynamoDB table")
    parser.add_argument("--table-name", help="Overrides DYNAMODB_TABLE_NAME")
    parser.add_argument(
        "--reset", action="store_true", help="Delete the table before creating it"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    if args.reset:
        delete_table(args.table_name)
    create_table_if_not_exists(args.table_name)


if __name__ == "__main__":
    main()
