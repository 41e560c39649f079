from dukkan.models.tenant import Tenant
from dukkan.models.product import Product
from dukkan.models.customer import Customer
from dukkan.models.order import Order
from dukkan.models.order_item import OrderItem
from dukkan.models.day_closure import DayClosure
from dukkan.models.availability_request import AvailabilityRequest
