"""Business limits shared by the services and their validation schemas."""

MIN_PER_PAGE = 1
MAX_PER_PAGE = 100
DEFAULT_PER_PAGE = 20
DEFAULT_PAGE = 1

MAX_INTEGER = 2147483647

MIN_NAME_LENGTH = 6
MAX_NAME_LENGTH = 100
MIN_EMAIL_LENGTH = 6
MAX_EMAIL_LENGTH = 100
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 20

MIN_PRODUCT_NAME_LENGTH = 2
MAX_PRODUCT_NAME_LENGTH = 100

MAX_ORDER_ITEMS_LENGTH = 10
MAX_ORDER_ITEM_QUANTITY = 10

CARD_NUMBER_LENGTH = 16
CARD_CVV_LENGTH = 3
MAX_CARD_TEXT_LENGTH = 15
MAX_PHONE_CODE_LENGTH = 4
MAX_PHONE_NUMBER_LENGTH = 10

DEFAULT_ORDER_BY = 'createdAt'
DEFAULT_ORDER = 'desc'
SORT_ORDERS = ('asc', 'desc')

DATE_FIELDS = ('createdAt', 'updatedAt', 'deletedAt')
AUDIT_FILTER_FIELDS = ('createUserId', 'updateUserId', 'createdAt', 'updatedAt')

USER_FILTER_FIELDS = ('name', 'email', 'role') + AUDIT_FILTER_FIELDS
USER_SORT_FIELDS = ('name', 'email', 'role', 'createdAt', 'updatedAt')

CUSTOMER_FILTER_FIELDS = ('name', 'email') + AUDIT_FILTER_FIELDS
CUSTOMER_SORT_FIELDS = ('name', 'email', 'createdAt', 'updatedAt')

PRODUCT_FILTER_FIELDS = ('name', 'category', 'price') + AUDIT_FILTER_FIELDS
PRODUCT_SORT_FIELDS = ('name', 'category', 'price', 'createdAt', 'updatedAt')

PAYMENT_PROFILE_FILTER_FIELDS = ('userId', 'paymentMethod') + AUDIT_FILTER_FIELDS
PAYMENT_PROFILE_SORT_FIELDS = ('userId', 'paymentMethod', 'createdAt', 'updatedAt')

ORDER_FILTER_FIELDS = ('userId', 'paymentProfileId', 'totalValue') + AUDIT_FILTER_FIELDS
ORDER_SORT_FIELDS = ('userId', 'paymentProfileId', 'totalValue', 'createdAt', 'updatedAt')

ORDER_ITEM_FILTER_FIELDS = ('orderId', 'productId', 'quantity') + AUDIT_FILTER_FIELDS
