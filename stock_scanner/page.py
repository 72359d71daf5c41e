"""Scan page: a one-shot state machine rendered as a single HTML document."""

from enum import Enum
from html import escape
from string import Template
from typing import Optional

from stock_scanner.models import ScanResult


class PageState(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    LOW_STOCK = "low-stock"
    ERROR = "error"


class InvalidTransition(RuntimeError):
    pass


COMMON_ISSUES = (
    "Product name doesn't match database",
    "No internet connection",
    "Notion API token expired",
    "Missing database properties (Total Consumed, etc.)",
)

LAYOUT = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
$head
<title>$title</title>
<style>
body { font-family: system-ui, sans-serif; background: #eef2ff; display: flex; align-items: center; justify-content: center; min-height: 100vh; margin: 0; }
.card { background: #fff; border-radius: 1rem; box-shadow: 0 10px 25px rgba(0,0,0,.1); padding: 2rem; max-width: 28rem; width: 100%; }
.card h2 { text-align: center; }
.details { border-radius: .75rem; padding: 1.5rem; background: #f9fafb; }
.low-stock .details { background: #fffbeb; border: 2px solid #fde68a; }
.error .details { background: #fef2f2; border: 2px solid #fecaca; color: #991b1b; text-align: center; }
.row { display: flex; justify-content: space-between; padding: .25rem 0; }
.restock { background: #fef3c7; border-radius: .5rem; padding: 1rem; text-align: center; font-weight: 600; color: #92400e; }
.hint { text-align: center; color: #6b7280; font-size: .875rem; }
button { width: 100%; margin-top: 1.5rem; background: #4f46e5; color: #fff; border: 0; border-radius: .5rem; padding: .75rem; font-weight: 600; }
</style>
</head>
<body>
<div class="card $state">
$body
</div>
</body>
</html>
""")

LOADING_BODY = Template("""<h2>Processing...</h2>
<p class="hint">Updating stock level</p>
<noscript><p class="hint"><a href="$action">Continue</a></p></noscript>""")

RESULT_BODY = Template("""<h2>$heading</h2>
<div class="details">
<div class="row"><span>Product:</span><strong>$name</strong></div>
<div class="row"><span>Previous:</span><span>$previous units</span></div>
<div class="row"><span>Current:</span><strong>$current units</strong></div>
<div class="row"><span>Consumed This Month:</span><span>$monthly</span></div>
<div class="row"><span>Total Consumed:</span><span>$total</span></div>
$extra
</div>
<p class="hint">You can close this page now</p>""")

PRICE_ROWS = Template("""<div class="row"><span>Unit Price:</span><span>$price&euro;</span></div>
<div class="row"><span>Remaining Value:</span><strong>$value&euro;</strong></div>""")

RESTOCK = """<div class="restock">Time to restock!</div>"""

ERROR_BODY = Template("""<h2>Error</h2>
<div class="details"><p>$message</p></div>
<p><strong>Common issues:</strong></p>
<ul>
$issues
</ul>
<button type="button" onclick="window.location.reload()">Try Again</button>""")


class ScanPage:
    """
    The page shown after a scan.

    Starts in ``loading`` and moves exactly once, to ``success``,
    ``low-stock`` or ``error``. A finished page never changes again; the
    only way back to ``loading`` is a new page load.
    """

    def __init__(self, product: Optional[str] = None) -> None:
        self.product = product
        self.state = PageState.LOADING
        self.result: Optional[ScanResult] = None
        self.error: Optional[str] = None

    def _leave_loading(self, target: PageState) -> None:
        if self.state is not PageState.LOADING:
            raise InvalidTransition(f"Cannot move from {self.state.value} to {target.value}")
        self.state = target

    def succeed(self, result: ScanResult) -> None:
        self._leave_loading(PageState(result.stock_status.value))
        self.result = result

    def fail(self, message: str) -> None:
        self._leave_loading(PageState.ERROR)
        self.error = message

    def render(self, action: Optional[str] = None) -> str:
        """Renders the current state; ``action`` is the URL a loading page follows."""
        head = ""
        if self.state is PageState.LOADING:
            if action is None:
                raise InvalidTransition("A loading page needs the URL of the scan to run")
            head = f'<meta http-equiv="refresh" content="0;url={escape(action)}">'
            title, body = "Processing...", LOADING_BODY.substitute(action=escape(action))
        elif self.state is PageState.ERROR:
            issues = "\n".join(f"<li>{escape(issue)}</li>" for issue in COMMON_ISSUES)
            title, body = "Error", ERROR_BODY.substitute(message=escape(self.error or ""), issues=issues)
        else:
            title, body = self._render_result()

        return LAYOUT.substitute(head=head, title=title, state=self.state.value, body=body)

    def _render_result(self) -> tuple[str, str]:
        result = self.result
        if self.state is PageState.LOW_STOCK:
            heading, extra = "Low Stock Alert!", RESTOCK
        else:
            heading = "Stock Updated!"
            extra = PRICE_ROWS.substitute(
                price=f"{result.unit_price:.2f}",
                value=f"{result.remaining_value:.2f}",
            )
        body = RESULT_BODY.substitute(
            heading=heading,
            name=escape(result.product_name),
            previous=result.previous_quantity,
            current=result.new_quantity,
            monthly=result.monthly_consumed,
            total=result.total_consumed,
            extra=extra,
        )
        return heading, body
