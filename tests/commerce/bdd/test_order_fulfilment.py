"""BDD tests for order fulfilment and stock consistency."""

from pytest_bdd import scenarios

scenarios("features/order_fulfilment.feature")
