"""Salt Job Client.

Asyncio client for the Salt REST API that authenticates, dispatches
commands to minions, and waits for the resulting jobs to complete.
"""

__version__ = "0.1.0"
