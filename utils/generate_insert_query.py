#!/usr/bin/env python3
"""
Script to generate SQL INSERT queries for the monitors table.

The generated monitors point at the mock server (utils/mock_server.py) and
are meant for load tests of the scheduler:
- website monitors on /ok, /slow, /flaky or /status/{n}
- keyword monitors on /keyword/{word}
- port monitors on the mock server port
- interval between 1 and 10 minutes, timeout between 2 and 30 seconds

The generated query is written to a file named 'insert_query.sql'.
"""

import random
import string
from pathlib import Path
from uuid import uuid4

# Number of rows to insert
ROWS_TO_INSERT = 2000
BASE_URL = "http://localhost:8080"
USER_ID = "load-test"


def generate_word() -> str:
    return "".join(random.choices(string.ascii_lowercase, k=6))


def generate_values() -> str:
    monitor_id = f"'{uuid4()}'"
    interval = random.randint(1, 10)
    timeout = random.randint(2, 30)
    roll = random.random()

    if roll < 0.1:
        word = generate_word()
        return (
            f"({monitor_id}, '{USER_ID}', 'keyword {word}', 'keyword', "
            f"'{BASE_URL}/keyword/{word}', '{word}', NULL, NULL, {interval}, {timeout})"
        )
    if roll < 0.2:
        return (
            f"({monitor_id}, '{USER_ID}', 'mock server port', 'port', "
            f"NULL, NULL, 'localhost', 8080, {interval}, {timeout})"
        )

    path = random.choice(["/ok", "/ok", "/ok", "/slow", "/flaky", "/status/503"])
    return (
        f"({monitor_id}, '{USER_ID}', 'website {path}', 'website', "
        f"'{BASE_URL}{path}', NULL, NULL, NULL, {interval}, {timeout})"
    )


def generate_insert_query() -> str:
    """Generate a multi-insert query for the monitors table.

    Returns:
        str: A SQL query string containing a multi-row INSERT statement.
    """
    all_values = ",\n    ".join(generate_values() for _ in range(ROWS_TO_INSERT))

    return f"""-- Insert load-test monitors
INSERT INTO monitors (id, user_id, name, type, url, keyword, host, port, interval_minutes, timeout_seconds)
VALUES
    {all_values};
"""


def main() -> None:
    query = generate_insert_query()

    output_file = Path("insert_query.sql")
    with open(output_file, "w") as f:
        f.write(query)

    print(f"SQL query with {ROWS_TO_INSERT} rows has been generated and saved to {output_file}")


if __name__ == "__main__":
    main()
