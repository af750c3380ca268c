"""
MJML Email Layouts
Transactional emails sent to travellers, written in MJML for responsive rendering
"""

from typing import Optional

THEME = {
    "primary": "#667eea",
    "primary_dark": "#764ba2",
    "background": "#f4f4f4",
    "card_bg": "#ffffff",
    "text_primary": "#1f2937",
    "text_secondary": "#374151",
    "text_muted": "#6b7280",
    "border": "#dddddd",
    "row_alt": "#f8f9fa",
}

LOGO_URL = "https://imheretravels.com/wp-content/uploads/2025/04/ImHereTravels-Logo.png"
SIGNATURE = "Bella | ImHereTravels"
SIGNATURE_EMAIL = "bella@imheretravels.com"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML wrapper for all traveller emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="10px 0 20px 0">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff"
              font-weight="600" border-radius="8px" padding="16px 36px" font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Arial, sans-serif" />
          <mj-text font-size="14px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="24px 20px" border-radius="8px 8px 0 0">
          <mj-column>
            <mj-text align="center" color="#ffffff" font-size="22px" font-weight="700">{title}</mj-text>
          </mj-column>
        </mj-section>
        <mj-section background-color="{THEME['card_bg']}" padding="20px">
          <mj-column>
            {content_sections}
          </mj-column>
        </mj-section>
        {cta_section}
        <mj-section padding="20px">
          <mj-column>
            <mj-text align="center" color="{THEME['text_muted']}">ImHereTravels | Creating Unforgettable Adventures</mj-text>
            <mj-image src="{LOGO_URL}" alt="ImHereTravels" width="120px" />
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _signature() -> str:
    return f"""
    <mj-text>
      Best regards,<br/>
      <strong>{SIGNATURE}</strong><br/>
      {SIGNATURE_EMAIL}
    </mj-text>
    """


def _term_table(term_rows: list[dict]) -> str:
    rows = ""
    for index, row in enumerate(term_rows):
        background = f' style="background-color: {THEME["row_alt"]};"' if index % 2 == 1 else ""
        rows += f"""
          <tr{background}>
            <td style="border: 1px solid {THEME['border']}; padding: 10px;">{row['term']}</td>
            <td style="border: 1px solid {THEME['border']}; padding: 10px;">{row['amount']}</td>
            <td style="border: 1px solid {THEME['border']}; padding: 10px;">{row['dueDate']}</td>
            <td style="border: 1px solid {THEME['border']}; padding: 10px;">{row['datePaid'] or 'Not paid'}</td>
          </tr>
        """
    header_style = f"background-color: {THEME['primary']}; color: #ffffff; padding: 10px; text-align: left;"
    return f"""
    <mj-table>
      <tr>
        <th style="{header_style}">Term</th>
        <th style="{header_style}">Amount</th>
        <th style="{header_style}">Due Date</th>
        <th style="{header_style}">Status</th>
      </tr>
      {rows}
    </mj-table>
    """


def payment_reminders_enabled_template(
    full_name: str,
    tour_package: str,
    payment_plan: str,
    payment_method: str,
    term_rows: list[dict],
    remaining_balance: str,
) -> str:
    """Summary sent once when payment reminders are switched on for a booking"""
    content = f"""
    <mj-text>Hi {full_name},</mj-text>
    <mj-text>This email confirms that we've set up automatic payment reminders for your booking:
      <strong>{tour_package}</strong>.</mj-text>
    <mj-text color="{THEME['primary']}" font-weight="700">Payment Plan: {payment_plan}</mj-text>
    <mj-text color="{THEME['primary']}" font-weight="700">Payment Method: {payment_method}</mj-text>
    <mj-text color="{THEME['primary']}" font-weight="700">Payment Schedule:</mj-text>
    {_term_table(term_rows)}
    <mj-text><strong>Remaining Balance:</strong> {remaining_balance}</mj-text>
    <mj-text>
      <ul>
        <li>You'll receive an email reminder before each payment due date</li>
        <li>Each reminder will include your current payment status</li>
        <li>You can contact us anytime if you need to adjust your payment plan</li>
      </ul>
    </mj-text>
    {_signature()}
    """
    return get_base_template(
        title="Payment Reminders Enabled",
        preview_text=f"Your payment schedule for {tour_package}",
        content_sections=content,
    )


def payment_reminder_template(full_name: str, term: str, amount: str, tour_package: str, due_date: str) -> str:
    content = f"""
    <mj-text>Hi {full_name},</mj-text>
    <mj-text>This is a reminder that your {term} payment of <strong>{amount}</strong> for
      {tour_package} is due on <strong>{due_date}</strong>.</mj-text>
    {_signature()}
    """
    return get_base_template(
        title="Payment Reminder",
        preview_text=f"Your {term} payment for {tour_package} is due on {due_date}",
        content_sections=content,
    )


def reservation_confirmation_template(
    full_name: str,
    tour_package: str,
    booking_id: str,
    amount: str,
    booking_url: Optional[str] = None,
) -> str:
    content = f"""
    <mj-text>Hi {full_name},</mj-text>
    <mj-text>Thank you for reserving your spot on <strong>{tour_package}</strong>.
      We've received your reservation fee of <strong>{amount}</strong>.</mj-text>
    <mj-text>Your booking reference is <strong>{booking_id}</strong>.</mj-text>
    <mj-text>Next, choose the payment plan that suits you from your booking page.</mj-text>
    {_signature()}
    """
    return get_base_template(
        title="Reservation Confirmed",
        preview_text=f"Your reservation for {tour_package} is confirmed",
        content_sections=content,
        cta_url=booking_url,
        cta_label="View My Booking",
    )


def installment_receipt_template(
    full_name: str,
    term_label: str,
    amount: str,
    tour_package: str,
    remaining_balance: str,
) -> str:
    content = f"""
    <mj-text>Hi {full_name},</mj-text>
    <mj-text>We've received your {term_label} payment of <strong>{amount}</strong> for
      <strong>{tour_package}</strong>.</mj-text>
    <mj-text><strong>Remaining Balance:</strong> {remaining_balance}</mj-text>
    {_signature()}
    """
    return get_base_template(
        title="Payment Received",
        preview_text=f"{term_label} payment received for {tour_package}",
        content_sections=content,
    )
