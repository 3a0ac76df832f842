"""Application constants."""

# No-show protocol: a missed appointment has this many days to be recovered
NOSHOW_RESPONSE_WINDOW_DAYS = 7
# Cases with this many days (or fewer) left raise an upcoming-deadline alert
NOSHOW_ALERT_THRESHOLD_DAYS = 2
# Unanswered contact attempts before the "no response" motive is auto-assigned
NOSHOW_AUTO_MOTIVE_ATTEMPTS = 3
NOSHOW_AUTO_LOST_REASON = "Automatic protocol: 7 days without response"

# Recovery campaign ids are RECOVERY_<motive>
RECOVERY_CAMPAIGN_PREFIX = "RECOVERY_"
RECOVERY_GENERAL_CAMPAIGN = "RECOVERY_GENERAL"

# Rule priorities (higher runs first)
PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}

# Channel pseudo-value expanded by in/not-in channel conditions
SOCIAL_CHANNEL_ALIAS = "social"
SOCIAL_CHANNELS = ("Facebook", "Instagram")

# Execution log queries
DEFAULT_LOG_LIMIT = 100
MAX_LOG_LIMIT = 1000

# System actor for automated notes
SYSTEM_ACTOR = "System"
