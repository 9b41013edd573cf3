"""
Markdown projection of a generated trial, stored as a note
"""

from typing import Any, Dict, Optional

from utils.shared_utils import utcnow


def format_trial_markdown(service_name: str, data: Dict[str, Any], generated_on: Optional[str] = None) -> str:
    """Render trial data into the fixed note template."""
    today = generated_on or utcnow().date().isoformat()
    lines = [f"# {service_name} Trial - Generated {today}", "", "## Account Details", ""]

    account = data.get("accountDetails") or {}
    lines += [
        f"- **Username:** {account.get('username') or 'N/A'}",
        f"- **Email:** {account.get('email') or 'N/A'}",
        f"- **Membership Level:** {account.get('membershipLevel') or 'Trial'}",
    ]

    profile = data.get("profile")
    if profile:
        lines += ["", "## Profile Information", ""]
        lines.append(f"- **Name:** {profile.get('firstName', '')} {profile.get('lastName', '')}".rstrip())
        if profile.get("age"):
            lines.append(f"- **Age:** {profile['age']}")
        if profile.get("occupation"):
            lines.append(f"- **Occupation:** {profile['occupation']}")
        if isinstance(profile.get("interests"), list):
            lines.append(f"- **Interests:** {', '.join(str(i) for i in profile['interests'])}")

    lines += ["", "## Contact Information", ""]
    email = data.get("email")
    if email:
        lines += [
            f"- **Email Address:** {email.get('email')}",
            f"- **Email Access Key:** {email.get('accessKey')}",
            f"- **Email Expires:** {email.get('expiresIn')} from generation time",
        ]
    phone = data.get("phone")
    if phone:
        lines += [
            f"- **Phone Number:** {phone.get('phoneNumber')}",
            f"- **Verification Code:** {phone.get('verificationCode')}",
            f"- **Phone Expires:** {phone.get('expiresIn')} from generation time",
        ]

    payment = data.get("paymentMethod")
    if payment:
        lines += [
            "",
            "## Payment Information",
            "",
            f"- **Payment Type:** {payment.get('type')}",
            f"- **Card Last 4:** {payment.get('last4')}",
            f"- **Expiry:** {payment.get('expiryMonth')}/{payment.get('expiryYear')}",
        ]

    lines += ["", "## Trial Status", "", f"- **Signup Time:** {data.get('signupTime') or today}"]
    if data.get("trialEndDate"):
        lines.append(f"- **Trial End Date:** {data['trialEndDate']}")

    lines += [
        "",
        "## Instructions",
        "",
        f"1. Use the login details above to access your {service_name} trial account.",
        "2. If prompted for verification, use the provided phone number and verification code.",
        "3. Your trial is set to expire on the trial end date. Make sure to cancel before then to avoid charges.",
        "4. For security, the payment method details are partially masked.",
    ]
    return "\n".join(lines) + "\n"
