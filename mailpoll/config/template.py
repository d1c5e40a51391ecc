"""Default configuration template.

This template is written to ~/.config/mailpoll/config.toml
when running `mailpoll config init`.
"""

CONFIG_TEMPLATE = """\
# mailpoll configuration

[imap]
host = "imap.example.com"
user = "me@example.com"
# Prefer the MAILPOLL_PASSWORD environment variable over storing it here.
# password = "secret"

# secure = true
# verify_cert = true
# port = 993

folder = "INBOX"
query = "NOT SEEN"
fetch_count = 50
check_interval = 300

# What to do with processed messages
flag_when_read = true
delete = false

# Record contents
include_body = true
content_type = "text/plain"
header_casing = "lowercase"
# headers_target = "headers"     # nest headers; "" drops them
# save_attachments = false
# mail_in_attachment = false
# tags = ["mail"]
# add_field = { source = "imap" }

[logging]
level = "INFO"
# file = true                   # ~/.local/state/mailpoll/mailpoll.log, or give a path
"""
