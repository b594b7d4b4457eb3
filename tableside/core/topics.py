"""Topic names for the notification bus.

Topics are opaque strings, a subscriber only receives events published to
the exact same name. Always build them through these helpers.
"""

DASHBOARD_ORDERS = "dashboard:orders"


def dashboard_orders_topic() -> str:
    return DASHBOARD_ORDERS


def order_topic(order_id) -> str:
    """Live view of a single order"""
    return f"orders:customer:{order_id}"


def role_topic(role) -> str:
    """Alerts targeted at one staff role, e.g. notifications:waiter"""
    value = getattr(role, "value", role)
    return f"notifications:{str(value).lower()}"


def menu_notifications_topic(customer_id) -> str:
    """Basket and order pushes for one customer's menu page"""
    return f"menu:notifications:{customer_id}"
