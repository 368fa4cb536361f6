import time
from datetime import timedelta
from pathlib import Path
import torch
from torch.utils.tensorboard import SummaryWriter

def get_device():
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")

def make_writer(logdir, run_name):
    """SummaryWriter under <logdir>/<run_name>-<time>, or None when logging is off."""
    if not logdir:
        return None
    return SummaryWriter(log_dir=(Path(logdir) / f"{run_name}-{time.strftime('%Y%m%d-%H%M%S')}").as_posix())

def banner(what, device, epochs, timeout):
    print(f"\n\tRunning {what} on {device.type} for {epochs} epochs, terminating after {timedelta(seconds=timeout)}.\n")

class Timer:
    def __init__(self):
        self.start = time.perf_counter()
    @property
    def elapsed(self):
        return time.perf_counter() - self.start
    def expired(self, timeout):
        return self.elapsed > timeout
