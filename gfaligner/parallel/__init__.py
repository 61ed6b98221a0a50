"""
Ordered worker pools: units run concurrently, results merge in unit order.
"""

from .scheduler import (
    BaseWorkerPool,
    InlineWorkerPool,
    ProcessWorkerPool,
    TaskChunker,
    ThreadWorkerPool,
    create_worker_pool,
    execute_parallel,
)

__all__ = ['BaseWorkerPool', 'InlineWorkerPool', 'ProcessWorkerPool', 'ThreadWorkerPool',
           'TaskChunker', 'create_worker_pool', 'execute_parallel']
