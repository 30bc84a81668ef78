"""
Receipts for settled orders.

A receipt is never stored: it is projected from the order every time it is
asked for, so reprinting the same order always produces the same output.
"""
from dataclasses import dataclass
from io import BytesIO

from django.conf import settings
from django.utils import timezone

from .billing import round_currency, to_decimal
from .exceptions import OrderNotSettled
from .workflow import PaymentStatus

RECEIPT_WIDTH = 40


@dataclass(frozen=True)
class HotelIdentity:
    name: str
    address: str
    phone: str
    vat_reg: str
    currency: str

    @classmethod
    def from_settings(cls):
        return cls(
            name=settings.HOTEL_NAME,
            address=settings.HOTEL_ADDRESS,
            phone=settings.HOTEL_PHONE,
            vat_reg=settings.HOTEL_VAT_REG,
            currency=settings.HOTEL_CURRENCY,
        )


@dataclass(frozen=True)
class ReceiptLine:
    quantity: int
    name: str
    amount: object


@dataclass(frozen=True)
class Receipt:
    hotel: HotelIdentity
    order_number: int
    order_type: str
    customer_name: str
    issued_at: str
    lines: tuple
    subtotal: object
    service_charge: object
    vat: object
    discount: object
    total: object
    payment_method: str
    transaction_code: str
    service_charge_rate: object
    vat_rate: object

    def as_dict(self):
        return {
            'hotel': {
                'name': self.hotel.name,
                'address': self.hotel.address,
                'phone': self.hotel.phone,
                'vat_reg': self.hotel.vat_reg,
            },
            'currency': self.hotel.currency,
            'order_number': self.order_number,
            'order_type': self.order_type,
            'customer_name': self.customer_name,
            'issued_at': self.issued_at,
            'lines': [
                {'quantity': line.quantity, 'name': line.name, 'amount': str(line.amount)}
                for line in self.lines
            ],
            'subtotal': str(self.subtotal),
            'service_charge': str(self.service_charge),
            'vat': str(self.vat),
            'discount': str(self.discount),
            'total': str(self.total),
            'payment_method': self.payment_method,
            'transaction_code': self.transaction_code,
        }


def format_amount(amount, currency='KES'):
    """'KES 1,659' style; whole amounts drop their decimals."""
    amount = to_decimal(amount)
    if amount == amount.to_integral_value():
        return f"{currency} {int(amount):,}"
    return f"{currency} {amount:,.2f}"


def _percent(rate):
    return f"{(to_decimal(rate) * 100).normalize():f}%"


def build_receipt(order, hotel=None):
    """Project a settled order into a Receipt."""
    if order.payment_status != PaymentStatus.PAID:
        raise OrderNotSettled(f"Order #{order.order_number} has not been paid.")

    hotel = hotel or HotelIdentity.from_settings()

    lines = tuple(
        ReceiptLine(quantity=item.quantity, name=item.menu_item.name, amount=to_decimal(item.total_price))
        for item in order.items.select_related('menu_item').order_by('id')
    )
    issued_at = timezone.localtime(order.completed_at).strftime('%d/%m/%Y %H:%M:%S') if order.completed_at else ''

    return Receipt(
        hotel=hotel,
        order_number=order.order_number,
        order_type=order.get_order_type_display(),
        customer_name=order.customer.name if order.customer_id else 'Walk-in',
        issued_at=issued_at,
        lines=lines,
        subtotal=to_decimal(order.subtotal),
        service_charge=round_currency(order.service_charge),
        vat=round_currency(order.vat),
        discount=to_decimal(order.discount),
        total=round_currency(order.total),
        payment_method=(order.payment_method or 'N/A').upper(),
        transaction_code=order.transaction_code or '',
        service_charge_rate=to_decimal(order.service_charge_rate),
        vat_rate=to_decimal(order.vat_rate),
    )


def _row(left, right, width=RECEIPT_WIDTH):
    gap = max(width - len(left) - len(right), 1)
    return f"{left}{' ' * gap}{right}"


def render_receipt_text(receipt):
    """Plain-text receipt for thermal printers and the API."""
    currency = receipt.hotel.currency
    rule = '-' * RECEIPT_WIDTH
    out = [
        receipt.hotel.name.upper().center(RECEIPT_WIDTH),
        receipt.hotel.address.center(RECEIPT_WIDTH),
        f"Tel: {receipt.hotel.phone}".center(RECEIPT_WIDTH),
        f"VAT Reg: {receipt.hotel.vat_reg}".center(RECEIPT_WIDTH),
        rule,
        _row(f"Order #: {receipt.order_number}", receipt.issued_at),
        _row(f"Customer: {receipt.customer_name}", receipt.order_type),
        rule,
        _row('Item', 'Amount'),
    ]
    for line in receipt.lines:
        out.append(_row(f"{line.quantity}x {line.name}", format_amount(line.amount, currency)))
    out.extend([
        rule,
        _row('Subtotal', format_amount(receipt.subtotal, currency)),
        _row(f"Service Charge ({_percent(receipt.service_charge_rate)})",
             format_amount(receipt.service_charge, currency)),
        _row(f"VAT ({_percent(receipt.vat_rate)})", format_amount(receipt.vat, currency)),
    ])
    if receipt.discount > 0:
        out.append(_row('Discount', f"-{format_amount(receipt.discount, currency)}"))
    out.extend([
        rule,
        _row('TOTAL', format_amount(receipt.total, currency)),
        rule,
        f"Paid via: {receipt.payment_method}".center(RECEIPT_WIDTH),
    ])
    if receipt.transaction_code:
        out.append(f"Transaction: {receipt.transaction_code}".center(RECEIPT_WIDTH))
    out.extend([
        '',
        'Asante Sana - Karibu Tena!'.center(RECEIPT_WIDTH),
        'Thank you for dining with us'.center(RECEIPT_WIDTH),
    ])
    return '\n'.join(line.rstrip() for line in out) + '\n'


def render_receipt_pdf(receipt):
    """
    A4 PDF receipt. Built in ReportLab's invariant mode so the same receipt
    always produces the same bytes.
    """
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
    from reportlab.lib.units import cm, mm
    from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

    currency = receipt.hotel.currency
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=10 * mm,
        rightMargin=10 * mm,
        topMargin=10 * mm,
        bottomMargin=10 * mm,
        title=f"Receipt {receipt.order_number}",
        author=receipt.hotel.name,
        invariant=1,
    )
    story = []
    styles = getSampleStyleSheet()

    header_style = ParagraphStyle(
        'ReceiptHeader',
        parent=styles['Heading1'],
        fontSize=18,
        textColor=colors.HexColor('#333333'),
        spaceAfter=6,
        alignment=1,
    )
    subtitle_style = ParagraphStyle(
        'ReceiptSubtitle',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#666666'),
        spaceAfter=3,
        alignment=1,
    )

    story.append(Paragraph(receipt.hotel.name.upper(), header_style))
    story.append(Paragraph(receipt.hotel.address, subtitle_style))
    story.append(Paragraph(f"Tel: {receipt.hotel.phone}", subtitle_style))
    story.append(Paragraph(f"VAT Reg: {receipt.hotel.vat_reg}", subtitle_style))
    story.append(Spacer(1, 8 * mm))

    info_data = [
        [Paragraph('<b>Order Number:</b>', styles['Normal']), Paragraph(f'<b>#{receipt.order_number}</b>', styles['Normal'])],
        [Paragraph('<b>Customer:</b>', styles['Normal']), Paragraph(receipt.customer_name, styles['Normal'])],
        [Paragraph('<b>Order Type:</b>', styles['Normal']), Paragraph(receipt.order_type, styles['Normal'])],
        [Paragraph('<b>Paid:</b>', styles['Normal']), Paragraph(receipt.issued_at, styles['Normal'])],
    ]
    info_table = Table(info_data, colWidths=[4.5 * cm, 6 * cm])
    info_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#f0f0f0')),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#cccccc')),
    ]))
    story.append(info_table)
    story.append(Spacer(1, 6 * mm))

    items_data = [[
        Paragraph('<b>Item</b>', styles['Normal']),
        Paragraph('<b>Qty</b>', styles['Normal']),
        Paragraph('<b>Amount</b>', styles['Normal']),
    ]]
    for line in receipt.lines:
        items_data.append([
            Paragraph(line.name, styles['Normal']),
            Paragraph(str(line.quantity), styles['Normal']),
            Paragraph(format_amount(line.amount, currency), styles['Normal']),
        ])
    items_table = Table(items_data, colWidths=[9 * cm, 2 * cm, 4 * cm])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#333333')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#cccccc')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f9f9f9')]),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 6 * mm))

    summary_data = [
        ['Subtotal:', format_amount(receipt.subtotal, currency)],
        [f'Service Charge ({_percent(receipt.service_charge_rate)}):', format_amount(receipt.service_charge, currency)],
        [f'VAT ({_percent(receipt.vat_rate)}):', format_amount(receipt.vat, currency)],
    ]
    if receipt.discount > 0:
        summary_data.append(['Discount:', f"-{format_amount(receipt.discount, currency)}"])
    summary_data.append(['TOTAL:', format_amount(receipt.total, currency)])
    summary_table = Table(summary_data, colWidths=[12 * cm, 4 * cm])
    summary_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('LINEABOVE', (0, -1), (-1, -1), 2, colors.HexColor('#000000')),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#f0f0f0')),
    ]))
    story.append(summary_table)
    story.append(Spacer(1, 8 * mm))

    footer_style = ParagraphStyle(
        'ReceiptFooter',
        parent=styles['Normal'],
        fontSize=9,
        textColor=colors.HexColor('#666666'),
        alignment=1,
    )
    story.append(Paragraph(f'Paid via: <b>{receipt.payment_method}</b>', footer_style))
    if receipt.transaction_code:
        story.append(Paragraph(f'Transaction: {receipt.transaction_code}', footer_style))
    story.append(Paragraph('Asante Sana - Karibu Tena!', footer_style))
    story.append(Paragraph('Thank you for dining with us', footer_style))

    doc.build(story)
    return buffer.getvalue()
