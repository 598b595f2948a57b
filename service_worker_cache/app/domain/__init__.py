from .models import Branch, Worker, WorkerPage, WorkersDelta

__all__ = ["Branch", "Worker", "WorkerPage", "WorkersDelta"]
