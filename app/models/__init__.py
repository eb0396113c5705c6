from app.models.customer import BufferCustomer  # noqa: F401
from app.models.invoice import BufferDueDate, BufferInvoice, BufferInvoiceRow  # noqa: F401
from app.models.sync_state import SyncEntity, SyncStateMixin  # noqa: F401
