from src.workers.invoicing import InvoicingWorker
from src.workers.messaging import MessagingWorker
from src.workers.receipts import ReceiptsWorker

# The import queue is consumed outside this service
WORKERS = {
    InvoicingWorker.queue_name: InvoicingWorker,
    MessagingWorker.queue_name: MessagingWorker,
    ReceiptsWorker.queue_name: ReceiptsWorker,
}

__all__ = ["InvoicingWorker", "MessagingWorker", "ReceiptsWorker", "WORKERS"]
