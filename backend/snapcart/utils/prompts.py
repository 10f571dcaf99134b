"""Default prompt used by the AI-backed extraction provider.

Keeping the prompt in one place makes it easier to iterate on its
wording.  The provider asks for plain structured text rather than JSON
because the same text then flows through ``ReceiptParser`` exactly
like the fallback provider's output does.
"""

from __future__ import annotations

from textwrap import dedent


def get_default_extraction_prompt() -> str:
    """Return the instruction sent alongside every receipt image.

    The model is asked for the store name and address, the date and
    time, every item with its price, the subtotal/tax/total amounts
    and the payment method, one per line, with money values written
    after their label (``TOTAL $18.29``) so the line-oriented parser
    can pick them up.
    """
    return dedent(
        """
        Analyze this receipt image and extract all the text content. Please provide:
        1. Store name and address
        2. Date and time
        3. All items with prices
        4. Subtotal, tax, and total amounts
        5. Payment method if visible

        Please format the output as structured text that clearly shows all the
        information from the receipt. Put the store name on the first line and
        write each item, subtotal, tax and total on its own line with the amount
        at the end of the line, for example "TOTAL $18.29".
        """
    ).strip()
