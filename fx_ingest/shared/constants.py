"""Fixed enumerations for currency pairs and candle timeframes."""

CURRENCY_PAIRS = (
    "EURUSD",
    "GBPUSD",
    "USDJPY",
    "USDCHF",
    "AUDUSD",
    "USDCAD",
    "NZDUSD",
    "EURJPY",
    "EURGBP",
)

TIMEFRAMES = ("5m", "15m", "30m", "1h", "4h", "1d", "1w")

TIMEFRAME_MINUTES = {
    "5m": 5,
    "15m": 15,
    "30m": 30,
    "1h": 60,
    "4h": 240,
    "1d": 1440,
    "1w": 10080,
}

# Timeframe folder names used by broker exports (nested import layout)
FOLDER_TO_TIMEFRAME = {
    "m5": "5m",
    "m15": "15m",
    "m30": "30m",
    "h1": "1h",
    "h4": "4h",
    "d1": "1d",
    "w1": "1w",
}

# Currency code -> countries publishing indicators that move it
CURRENCY_COUNTRIES = {
    "USD": ("US", "United States"),
    "EUR": ("EU", "Eurozone", "European Monetary Union", "Germany", "France", "Italy", "Spain"),
    "GBP": ("GB", "UK", "United Kingdom"),
    "JPY": ("JP", "Japan"),
    "CHF": ("CH", "Switzerland"),
    "AUD": ("AU", "Australia"),
    "CAD": ("CA", "Canada"),
    "NZD": ("NZ", "New Zealand"),
    "CNY": ("CN", "China"),
}

DEFAULT_SOURCE = "csv"
