"""Stage timing for backup runs.

Always on: each stage prints its wall-clock time to the console and, when a
CloudWatch tracer is active, is sent as a `stage` span as well.
"""

import time


class StageTimer:
    """Elapsed time per named stage.

        timer = StageTimer(console, tracer)
        size = dir_size(world.data_dir)
        timer.mark("measure")      # prints "  measure  0.8s"
    """

    def __init__(self, console, tracer=None, quiet=False):
        self.console = console
        self.tracer = tracer
        self.quiet = quiet
        self.stages = {}
        self._stage_start = time.monotonic()

    def mark(self, label):
        now = time.monotonic()
        elapsed = now - self._stage_start
        self._stage_start = now
        self.stages[label] = elapsed
        if not self.quiet:
            self.console.print(f"  [dim]{label}  {elapsed:.1f}s[/dim]")
        if self.tracer is not None:
            self.tracer.emit("stage", label, elapsed_ms=elapsed * 1000)
        return elapsed
