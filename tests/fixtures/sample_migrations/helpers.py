"""Not a migration module: name does not start with a number."""

NUMBER = 99
DESCRIPTION = "never loaded"


async def apply(connection, transaction) -> None:
    raise AssertionError("helpers.py must not be loaded as a migration")
