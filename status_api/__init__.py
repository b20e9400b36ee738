"""HTTP query endpoint serving status-monitor results to the dashboard."""
