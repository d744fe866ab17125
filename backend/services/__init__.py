from importlib import import_module

__all__ = [
    "RpcChainReader",
    "ActivityAggregator",
    "ProposalScanner",
    "TreasuryReader",
    "PollScheduler",
    "DashboardStore",
    "DashboardService",
]

_LAZY_EXPORTS = {
    "RpcChainReader": ("services.chain_reader", "RpcChainReader"),
    "ActivityAggregator": ("services.activity_aggregator", "ActivityAggregator"),
    "ProposalScanner": ("services.deadline_selector", "ProposalScanner"),
    "TreasuryReader": ("services.treasury", "TreasuryReader"),
    "PollScheduler": ("services.poll_scheduler", "PollScheduler"),
    "DashboardStore": ("services.dashboard_state", "DashboardStore"),
    "DashboardService": ("services.dashboard_service", "DashboardService"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
