import io
from typing import Any, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .calc_runner import CalcResult
from .report import dec_to_str, fmt_money, is_converted


def _make_wrapped_table(data: List[List[Any]], styles, usable_width: float) -> Table:
    """
    Create a wrapped table that fits the page width.
    - data[0] is the header row.
    - Column widths follow the text length of the header + a sample of rows,
      clamped to readable bounds.
    """
    wrap_style = ParagraphStyle(
        "WrapSmall",
        parent=styles["Normal"],
        fontSize=8,
        leading=10,
        wordWrap="CJK",
    )
    wrapped = [[Paragraph("" if c is None else str(c), wrap_style) for c in row] for row in data]

    ncols = len(data[0]) if data else 0
    if ncols == 0:
        t = Table(wrapped, hAlign="LEFT")
        t.setStyle(TableStyle([("GRID", (0, 0), (-1, -1), 0.25, colors.black)]))
        return t

    # Relative weights from header + up to 50 body rows, capped per cell
    weights = [0] * ncols
    for row in data[:51]:
        for i, cell in enumerate(row):
            weights[i] += max(1, min(len("" if cell is None else str(cell)), 40))

    min_w, max_w = 0.7 * inch, 1.8 * inch
    total_w = sum(weights)
    col_widths = [max(min_w, min(max_w, w / total_w * usable_width)) for w in weights]
    scale = usable_width / sum(col_widths)
    col_widths = [cw * scale for cw in col_widths]

    t = Table(wrapped, hAlign="LEFT", colWidths=col_widths, repeatRows=1)
    t.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.black),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
                ("TOPPADDING", (0, 0), (-1, -1), 3),
            ]
        )
    )
    return t


def build_summary_pdf(result: CalcResult, title: str = "Capital Gains Tax - FIFO Summary") -> bytes:
    """
    Generate a PDF with:
      - title + tax year
      - the year's tax figures (gain, exemption, taxable gain, tax due)
      - one row per payment period
      - the full FIFO match list

    Returns raw PDF bytes.
    """
    dp = result.cfg.round_dp
    s = result.summary
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=0.5 * inch,
        rightMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
    )
    styles = getSampleStyleSheet()
    width = doc.width
    story = [
        Paragraph(title, styles["Title"]),
        Paragraph(f"Tax Year: {result.tax_year} ({result.cfg.jurisdiction}, {result.cfg.currency})", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("Totals", styles["Heading2"]),
    ]

    totals = [
        ["Field", "Value"],
        ["Total proceeds", fmt_money(s.total_proceeds, dp)],
        ["Total cost basis", fmt_money(s.total_cost, dp)],
        ["Net gain", fmt_money(s.total_gain, dp)],
        ["Annual exemption", fmt_money(s.exemption, dp)],
        ["Taxable gain (amount above exemption)", fmt_money(s.chargeable_gain, dp)],
        [f"Tax to pay ({fmt_money(s.tax_rate * 100, 2)}%)", fmt_money(s.tax_due, dp)],
    ]
    story += [_make_wrapped_table(totals, styles, width), Spacer(1, 10)]

    if result.periods:
        story.append(Paragraph("Payment Periods", styles["Heading2"]))
        data = [["From", "To", "Proceeds", "Gain", "Loss", "Net"]]
        for p in result.periods:
            data.append([
                p.start.isoformat() if p.start else "",
                p.end.isoformat() if p.end else "",
                fmt_money(p.proceeds, dp),
                fmt_money(p.gains, dp),
                fmt_money(p.losses, dp),
                fmt_money(p.net_gain, dp),
            ])
        story += [_make_wrapped_table(data, styles, width), Spacer(1, 10)]

    story.append(Paragraph("FIFO Matches", styles["Heading2"]))
    if result.matches:
        native = result.cfg.transaction_currency if is_converted(result.matches) else None
        header = ["Acquired", "Disposed", "Quantity", "Cost Basis", "Proceeds", "Gain"]
        if native:
            header += ["FX Rate (sale)", f"Proceeds ({native})", f"Gain ({native})"]
        data = [header]
        for m in result.matches:
            row = [
                m.acquired_date.isoformat(),
                m.disposal_date.isoformat(),
                dec_to_str(m.quantity),
                fmt_money(m.cost_basis, dp),
                fmt_money(m.proceeds, dp),
                fmt_money(m.gain, dp),
            ]
            if native:
                row += [dec_to_str(m.disposal_fx_rate), fmt_money(m.native_proceeds, dp), fmt_money(m.native_gain, dp)]
            data.append(row)
        story.append(_make_wrapped_table(data, styles, width))
    else:
        story.append(Paragraph("No disposals in this tax year.", styles["Normal"]))

    doc.build(story)
    return buffer.getvalue()
