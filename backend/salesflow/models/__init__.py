from .contacts import Contact
from .documents import (
    Quotation, SalesOrder, PurchaseOrder, PurchaseOrderItem,
    Delivery, Invoice, InvoiceItem, Payment,
)
from .sales_process import (
    SalesProcess, ProcessQuotation, ProcessSalesOrder,
    ProcessPurchaseOrder, ProcessDelivery, ProcessInvoice,
)

__all__ = [
    'Contact',
    'Quotation', 'SalesOrder', 'PurchaseOrder', 'PurchaseOrderItem',
    'Delivery', 'Invoice', 'InvoiceItem', 'Payment',
    'SalesProcess', 'ProcessQuotation', 'ProcessSalesOrder',
    'ProcessPurchaseOrder', 'ProcessDelivery', 'ProcessInvoice',
]
