# ========================
# src/utils/performance_monitor.py
# ========================

"""
Performance Monitoring Utilities

Tracks throughput and memory of an import run.
"""

import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

import psutil

logger = logging.getLogger(__name__)

class PerformanceMonitor:
    """
    Tracks processing time, rows/batches throughput and peak memory (RSS).
    """
    
    def __init__(self, name: str = "Import", log_interval: int = 10):
        """
        Initialize performance monitor.
        
        Args:
            name (str): Name for this monitoring session
            log_interval (int): Log progress every this many batches
        """
        self.name = name
        self.log_interval = max(1, log_interval)
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.peak_memory_mb = 0.0
        self.rows_processed = 0
        self.batches_processed = 0
        self.summary: Dict[str, Any] = {}
        self._process = psutil.Process(os.getpid())
        
    def start_monitoring(self) -> None:
        """Start performance monitoring."""
        self.start_time = time.time()
        self.peak_memory_mb = self._get_memory_usage_mb()
        logger.debug(f"{self.name} - monitoring started, memory {self.peak_memory_mb:.2f} MB")
        
    def update_progress(self, rows_in_batch: int) -> None:
        """
        Record a finished batch.
        
        Args:
            rows_in_batch (int): Number of rows in the batch
        """
        self.rows_processed += rows_in_batch
        self.batches_processed += 1
        current_memory = self._get_memory_usage_mb()
        self.peak_memory_mb = max(self.peak_memory_mb, current_memory)
        
        if self.batches_processed % self.log_interval == 0:
            elapsed = time.time() - self.start_time if self.start_time else 0
            throughput = self.rows_processed / elapsed if elapsed > 0 else 0
            logger.info(
                f"{self.name} - Progress: {self.batches_processed} batches, "
                f"{self.rows_processed:,} rows, {throughput:.0f} rows/sec, "
                f"Memory: {current_memory:.2f} MB"
            )
    
    def stop_monitoring(self) -> Dict[str, Any]:
        """
        Stop monitoring and return performance summary.
        
        Returns:
            dict: Performance statistics
        """
        self.end_time = time.time()
        total_time = self.end_time - self.start_time if self.start_time else 0
        summary = {
            'name': self.name,
            'total_processing_time_seconds': total_time,
            'rows_processed': self.rows_processed,
            'batches_processed': self.batches_processed,
            'average_throughput_rows_per_second': self.rows_processed / total_time if total_time > 0 else 0,
            'peak_memory_usage_mb': self.peak_memory_mb,
        }
        logger.info(
            f"{self.name} - {summary['rows_processed']:,} rows in {summary['batches_processed']} batches, "
            f"{total_time:.2f}s ({summary['average_throughput_rows_per_second']:.0f} rows/sec), "
            f"peak memory {self.peak_memory_mb:.2f} MB"
        )
        return summary
        
    def _get_memory_usage_mb(self) -> float:
        """Current resident memory of this process in MB."""
        try:
            return self._process.memory_info().rss / (1024 * 1024)
        except psutil.Error as e:
            logger.debug(f"Could not get memory usage: {e}")
            return self.peak_memory_mb

@contextmanager
def monitor_performance(name: str = "Import", log_interval: int = 10):
    """
    Context manager for easy performance monitoring.
    
    Args:
        name (str): Name for this monitoring session
        log_interval (int): Log progress every this many batches
        
    Yields:
        PerformanceMonitor: Monitor instance
    """
    monitor = PerformanceMonitor(name, log_interval=log_interval)
    monitor.start_monitoring()
    try:
        yield monitor
    finally:
        monitor.summary = monitor.stop_monitoring()
