class TablesideError(Exception):
    """Base class for domain errors raised by services"""


class OrderNotFound(TablesideError):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class IllegalTransition(TablesideError):
    """Requested status has no legal edge from the current one"""

    def __init__(self, current, target):
        super().__init__(f"Cannot move order from {current.value} to {target.value}")
        self.current = current
        self.target = target


class TransitionNotPermitted(TablesideError):
    """Actor role may not perform this transition"""

    def __init__(self, role, action: str):
        super().__init__(f"Role {role.value} may not {action} an order")
        self.role = role
        self.action = action


class PersistenceError(TablesideError):
    pass


class EmptyBasket(TablesideError):
    pass


class PaymentError(TablesideError):
    pass


class MenuItemNotFound(TablesideError):
    def __init__(self, item_id: int):
        super().__init__(f"Menu item {item_id} not found")
        self.item_id = item_id


class InsufficientMargin(TablesideError):
    """Price leaves less than the minimum profit margin over cost"""

    def __init__(self, price: float, cost: float, minimum: float):
        super().__init__(f"Price {price:.2f} over cost {cost:.2f} must give at least a {minimum:g}% profit margin")
        self.price = price
        self.cost = cost
        self.minimum = minimum
