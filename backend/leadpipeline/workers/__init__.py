"""Background workers"""
from .pipeline_monitor_worker import PipelineMonitorWorker, MonitoringResult

__all__ = ["PipelineMonitorWorker", "MonitoringResult"]
