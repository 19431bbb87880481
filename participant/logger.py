import logging
import time
from collections import deque

logger = logging.getLogger("participant.transactions")


class TransactionLogger:
    """Records per-transaction state transitions"""

    def __init__(self, history=1000):
        self.logs = deque(maxlen=history)

    def log(self, tx_id, status, message=""):
        """Add log entry"""
        timestamp = time.strftime("%H:%M:%S")
        entry = f"{timestamp} | TX={tx_id} | {status} | {message}"
        self.logs.append(entry)
        logger.info("TX=%s | %s | %s", tx_id, status, message)
        return entry

    def entries_for(self, tx_id):
        marker = f"| TX={tx_id} |"
        return [entry for entry in self.logs if marker in entry]
