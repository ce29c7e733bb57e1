"""
Wall-clock timing for fits and model comparisons.

lmer() splits its time into 'setup' (design matrices), 'fit'
(statsmodels optimisation) and 'extract' (building the parameter
payload); anova() records the ML refits under 'refit'.
"""

import time
from contextlib import contextmanager
from typing import Iterator


class Timer:
    """
    Total elapsed time plus named sections.

        timer = Timer()
        timer.start()
        with timer.section('fit'):
            fitted = model.fit(reml=True)
        timer.stop()
        timer.result()   # {'total_seconds': 0.21, 'fit': 0.20}

    A section entered twice adds to its previous total.
    """

    def __init__(self):
        self._sections: dict[str, float] = {}
        self._started: float | None = None
        self._total: float | None = None

    def start(self) -> None:
        self._started = time.perf_counter()

    def stop(self) -> None:
        if self._started is None:
            raise RuntimeError("Timer.stop() called before start()")
        self._total = time.perf_counter() - self._started

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        begin = time.perf_counter()
        try:
            yield
        finally:
            self._sections[name] = (
                self._sections.get(name, 0.0) + time.perf_counter() - begin
            )

    def result(self) -> dict[str, float]:
        """Seconds per section plus 'total_seconds'; only after stop()."""
        if self._total is None:
            raise RuntimeError("Timer.result() called before stop()")
        return {'total_seconds': self._total, **self._sections}
