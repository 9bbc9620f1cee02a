"""
MJML Email Templates
Booking notification emails (French copy) plus the matching SMS texts
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

# App theme colors - Violet/Slate color scheme
THEME = {
    "primary": "#7c3aed",
    "primary_light": "#ede9fe",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#666666",
    "border": "#eeeeee",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
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
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}" width="600px">
        <mj-section background-color="#ffffff" padding="32px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="26px" font-weight="600" color="{THEME['primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}

            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="20px 0" />
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}" padding="0">
              <em>L'équipe Le Papasito</em>
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _duration_line(duration) -> str:
    if duration is None:
        return ""
    return f"""
    <mj-text>
      Durée: <strong>{escape(str(duration))} heure(s)</strong>
    </mj-text>
    """


def booking_reminder_template(user_name: str, date: str, start_time: str, duration) -> str:
    """Reminder sent the day before an appointment"""
    content = f"""
    <mj-text>
      Bonjour {escape(user_name)},
    </mj-text>

    <mj-text>
      Nous vous rappelons votre rendez-vous prévu pour demain, le <strong>{escape(date)}</strong> à <strong>{escape(start_time)}</strong>.
    </mj-text>
    {_duration_line(duration)}
    <mj-text>
      À très bientôt!
    </mj-text>
    """

    return get_base_template(
        title="Rappel de rendez-vous",
        preview_text=f"Votre rendez-vous de demain à {escape(start_time)}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/dashboard",
        cta_label="Voir mes réservations",
    )


def booking_confirmation_template(user_name: str, date: str, start_time: str, duration) -> str:
    content = f"""
    <mj-text>
      Bonjour {escape(user_name)},
    </mj-text>

    <mj-text>
      Votre réservation a été confirmée pour le <strong>{escape(date)}</strong> à <strong>{escape(start_time)}</strong>.
    </mj-text>
    {_duration_line(duration)}
    <mj-text>
      Merci de votre confiance!
    </mj-text>
    """

    return get_base_template(
        title="Confirmation de réservation",
        preview_text=f"Réservation confirmée le {escape(date)}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/dashboard",
        cta_label="Voir mes réservations",
    )


def booking_reminder_sms(date: str, start_time: str) -> str:
    return f"Le Papasito: Rappel de votre RDV demain {date} à {start_time}. À bientôt!"


def booking_confirmation_sms(date: str, start_time: str) -> str:
    return f"Le Papasito: Votre réservation du {date} à {start_time} est confirmée. À bientôt!"
