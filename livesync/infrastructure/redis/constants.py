# Pub/Sub channels
PUBSUB_CHANNEL_UPDATES = "channel:livesync:updates"
