# Workers: long-running processes driving the dashboard pollers.
# Run from backend/ with:
#   python -m workers.dashboard_worker
