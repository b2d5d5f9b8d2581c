"""
Release reporting utilities for codepush-management-client.

This module turns deployment metrics and release history into pandas
DataFrames for inspection, summaries and CSV export.
"""

import pandas as pd
from typing import Any, Dict, List, Optional
from .account_manager import AccountManager
from .models import DeploymentMetrics, Package
from .utils import format_percent

METRIC_COLUMNS = ["active", "downloaded", "failed", "installed"]
HISTORY_COLUMNS = [
    "label",
    "appVersion",
    "uploadTime",
    "isMandatory",
    "isDisabled",
    "rollout",
    "size",
    "releasedBy",
    "releaseMethod",
    "description",
]


def metrics_to_frame(metrics: DeploymentMetrics) -> pd.DataFrame:
    """
    Convert deployment metrics into a DataFrame indexed by release label.

    Args:
        metrics: Metrics keyed by release label

    Returns:
        DataFrame with the raw counts plus ``install_rate`` and
        ``failure_rate`` (both relative to downloads)
    """
    if not metrics:
        df = pd.DataFrame(columns=METRIC_COLUMNS + ["install_rate", "failure_rate"])
        df.index.name = "label"
        return df

    df = pd.DataFrame.from_dict(metrics, orient="index")
    df = df.reindex(columns=METRIC_COLUMNS).fillna(0).astype(int)
    df.index.name = "label"

    downloads = df["downloaded"].where(df["downloaded"] > 0)
    df["install_rate"] = (df["installed"] / downloads).fillna(0.0)
    df["failure_rate"] = (df["failed"] / downloads).fillna(0.0)
    return df


def history_to_frame(history: List[Package]) -> pd.DataFrame:
    """Convert a release history into a DataFrame, one row per release."""
    df = pd.DataFrame(history, columns=HISTORY_COLUMNS)
    if not df.empty:
        df["uploadTime"] = pd.to_datetime(df["uploadTime"], unit="ms", utc=True)
    return df


class ReleaseReportProcessor:
    """
    High-level report processor for CodePush deployments.

    This class provides convenient methods for fetching deployment data
    and summarizing how releases are being adopted.
    """

    def __init__(self, manager: AccountManager):
        """Initialize with a management client."""
        self.manager = manager

    def get_metrics_frame(self, app_name: str, deployment_name: str) -> pd.DataFrame:
        metrics = self.manager.get_deployment_metrics(app_name, deployment_name)
        return metrics_to_frame(metrics)

    def get_history_frame(self, app_name: str, deployment_name: str) -> pd.DataFrame:
        history = self.manager.get_deployment_history(app_name, deployment_name)
        return history_to_frame(history)

    def summarize_deployment(self, app_name: str, deployment_name: str) -> Dict[str, Any]:
        """
        Summarize release adoption for a deployment.

        Args:
            app_name: App identifier, optionally ``owner/app``
            deployment_name: Deployment to summarize

        Returns:
            Dictionary with totals, the overall install rate and the label
            with the most active installs
        """
        df = self.get_metrics_frame(app_name, deployment_name)

        if df.empty:
            return {
                "releases": 0,
                "total_active": 0,
                "total_downloaded": 0,
                "total_installed": 0,
                "total_failed": 0,
                "install_rate": 0.0,
                "top_label": None,
            }

        total_downloaded = int(df["downloaded"].sum())
        total_installed = int(df["installed"].sum())

        return {
            "releases": len(df),
            "total_active": int(df["active"].sum()),
            "total_downloaded": total_downloaded,
            "total_installed": total_installed,
            "total_failed": int(df["failed"].sum()),
            "install_rate": (
                total_installed / total_downloaded if total_downloaded > 0 else 0.0
            ),
            "top_label": str(df["active"].idxmax()),
        }

    def export_history_report(
        self, app_name: str, deployment_name: str, output_path: str
    ) -> None:
        """
        Export a deployment's release history joined with its metrics to CSV.

        Args:
            app_name: App identifier, optionally ``owner/app``
            deployment_name: Deployment to export
            output_path: Path to save the CSV file
        """
        history = self.get_history_frame(app_name, deployment_name)
        metrics = self.get_metrics_frame(app_name, deployment_name)

        if not history.empty:
            report = history.merge(metrics.reset_index(), how="left", on="label")
            report[METRIC_COLUMNS] = report[METRIC_COLUMNS].fillna(0).astype(int)
            report["install_rate"] = report["install_rate"].fillna(0.0).map(format_percent)
            report = report.drop(columns=["failure_rate"])
        else:
            report = history

        report.to_csv(output_path, index=False)


def create_release_report_processor(
    access_key: str,
    server_url: Optional[str] = None,
    custom_headers: Optional[Dict[str, str]] = None,
    proxy: Optional[str] = None,
) -> ReleaseReportProcessor:
    """
    Convenience function to create a ReleaseReportProcessor with a client.

    Args:
        access_key: CodePush API token
        server_url: Optional management API base URL
        custom_headers: Optional headers sent with every request
        proxy: Optional proxy URL

    Returns:
        Configured ReleaseReportProcessor instance
    """
    manager = AccountManager(
        access_key=access_key,
        custom_headers=custom_headers,
        server_url=server_url,
        proxy=proxy,
    )

    return ReleaseReportProcessor(manager)
