from .bill import Bill
from .customer import CUSTOMER_REFERENCE_SEPARATOR, Customer, split_customer_reference
from .delivery import DeliveryEntry
from .invoice import Invoice
from .payment import Payment
from .payment_log import PaymentLog
from .user import User
