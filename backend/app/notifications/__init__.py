"""
notifications — Zone-topic push fan-out and subscriptions.

Sub-modules:
    models         — TopicAlert, per-zone outcomes, aggregated results
    transport      — transport interface, disabled + simulated transports
    fcm            — Firebase Cloud Messaging transport and bootstrap
    dispatcher     — one alert per zone for a new report
    subscriptions  — register a client token on its neighbourhood topics
"""
