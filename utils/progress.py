from typing import Optional
import logging
from tqdm import tqdm
import time


class ProgressMonitor:
    """tqdm bar over a batch of model fits, counting failed items"""

    def __init__(self, total: int, desc: str = "Fitting",
                 logger: Optional[logging.Logger] = None,
                 disable: bool = False,
                 log_every: int = 10):
        self.logger = logger or logging.getLogger('progress')
        self.pbar = tqdm(total=total, desc=desc, disable=disable, leave=False, unit='fit')
        self.total = total
        self.done = 0
        self.failed = 0
        self.log_every = log_every
        self.started = time.time()
        self.desc = desc

    def update(self, n: int = 1, status: str = "", failed: bool = False):
        """Advance by n items; status names the item just finished"""
        self.done += n
        if failed:
            self.failed += n
        self.pbar.update(n)

        if status:
            self.pbar.set_postfix_str(f"{status} ({self.failed} failed)")
            self.logger.debug(f"{self.desc}: {status}{' failed' if failed else ''}")

        if self.log_every and self.done % self.log_every == 0 and self.done < self.total:
            elapsed = time.time() - self.started
            remaining = elapsed / self.done * (self.total - self.done)
            self.logger.info(
                f"{self.desc}: {self.done}/{self.total} done, {self.failed} failed, "
                f"~{remaining:.0f}s remaining"
            )

    def close(self):
        self.pbar.close()
        self.logger.info(
            f"{self.desc}: {self.done - self.failed}/{self.total} succeeded "
            f"in {time.time() - self.started:.1f}s"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
