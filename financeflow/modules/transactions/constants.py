"""
Constants for transaction extraction and categorization
Contains sender tables, keyword patterns and merchant rules
"""

# Sender domain fragment -> display name, for bank alerts
BANK_SENDERS = {
    "hdfcbank": "HDFC Bank",
    "icicibank": "ICICI Bank",
    "sbi.co.in": "SBI",
    "onlinesbi": "SBI",
    "axisbank": "Axis Bank",
    "axis.bank": "Axis Bank",
    "kotak": "Kotak Bank",
    "yesbank": "Yes Bank",
    "yes.bank": "Yes Bank",
    "idfcfirst": "IDFC First Bank",
    "idfcbank": "IDFC First Bank",
    "rblbank": "RBL Bank",
    "federalbank": "Federal Bank",
    "indusind": "IndusInd Bank",
    "pnb": "PNB",
    "bankofbaroda": "Bank of Baroda",
    "canarabank": "Canara Bank",
    "unionbank": "Union Bank",
}

# Sender domain fragment -> display name, for UPI / wallet apps
UPI_APP_SENDERS = {
    "phonepe": "PhonePe",
    "paytm": "Paytm",
    "gpay": "Google Pay",
    "google.com": "Google Pay",
    "amazonpay": "Amazon Pay",
    "bhim": "BHIM",
    "cred.club": "CRED",
}

# Sender domain fragment -> display name, for card issuers/networks
CARD_SENDERS = {
    "americanexpress": "American Express",
    "onecard": "OneCard",
    "sbicard": "SBI Card",
    "slice": "Slice",
}

# Body keywords used when the sender does not identify the channel
BANK_NAME_PATTERN = (
    r"\b(hdfc|icici|sbi|axis|kotak|yes|idfc|rbl|federal|indusind|pnb|baroda|canara|union)"
    r"(?:\s*first)?\s*bank\b"
)
UPI_PATTERN = r"\bupi\b|\bvpa\b|gpay|google\s*pay|phonepe|paytm|bhim"
CARD_PATTERN = (
    r"credit\s*card|debit\s*card|\bvisa\b|mastercard|rupay|\bamex\b|"
    r"american\s*express|card\s*(?:no\.?|ending|xx)"
)
BANK_TRANSFER_PATTERN = r"\bneft\b|\bimps\b|\brtgs\b|net\s*banking|netbanking|bank\s*transfer"

# Keywords marking a message as a transaction alert at all
TRANSACTION_KEYWORDS = [
    "debited",
    "credited",
    "spent",
    "paid",
    "payment",
    "transaction",
    "txn",
    "purchase",
    "withdrawn",
    "received",
    "refund",
    "upi",
    "vpa",
    "imps",
    "neft",
    "rtgs",
    "transfer",
]

# Subject keywords used to build the Gmail search query
GMAIL_SUBJECT_KEYWORDS = [
    "UPI",
    "debited",
    "credited",
    "transaction",
    "txn",
    "payment",
    "alert",
    "spent",
]

DEBIT_PATTERN = r"\b(debited|spent|paid|sent|withdrawn|purchase|charged|deducted|used\s+for)\b"
CREDIT_PATTERN = r"\b(credited|received|refund(?:ed)?|deposited|reversed|cashback)\b"

# Merchant rules: pattern -> (display name, category)
MERCHANT_RULES = {
    r"swiggy": ("Swiggy", "Food & Dining"),
    r"zomato": ("Zomato", "Food & Dining"),
    r"bigbasket": ("BigBasket", "Groceries"),
    r"blinkit|grofers": ("Blinkit", "Groceries"),
    r"zepto": ("Zepto", "Groceries"),
    r"instamart": ("Instamart", "Groceries"),
    r"amazon(?!\s*pay)": ("Amazon", "Shopping"),
    r"flipkart": ("Flipkart", "Shopping"),
    r"myntra": ("Myntra", "Shopping"),
    r"ajio": ("AJIO", "Shopping"),
    r"nykaa": ("Nykaa", "Shopping"),
    r"meesho": ("Meesho", "Shopping"),
    r"\buber\b": ("Uber", "Transportation"),
    r"\bola\b|olacabs": ("Ola", "Transportation"),
    r"rapido": ("Rapido", "Transportation"),
    r"irctc": ("IRCTC", "Transportation"),
    r"makemytrip": ("MakeMyTrip", "Travel"),
    r"goibibo": ("Goibibo", "Travel"),
    r"netflix": ("Netflix", "Entertainment"),
    r"spotify": ("Spotify", "Entertainment"),
    r"hotstar": ("Disney+ Hotstar", "Entertainment"),
    r"bookmyshow": ("BookMyShow", "Entertainment"),
    r"airtel": ("Airtel", "Bills & Utilities"),
    r"\bjio\b": ("Jio", "Bills & Utilities"),
    r"bescom|tata\s*power": ("Electricity", "Bills & Utilities"),
    r"\blic\b|life\s*insurance\s*corp": ("LIC", "Insurance"),
    r"acko": ("Acko", "Insurance"),
    r"icici\s*lombard": ("ICICI Lombard", "Insurance"),
    r"zerodha": ("Zerodha", "Investments"),
    r"groww": ("Groww", "Investments"),
}

# Category rules applied to the merchant name / text when no merchant rule matched
CATEGORY_RULES = {
    r"restaurant|\bcafe|coffee|starbucks|domino|pizza|mcdonald|\bkfc\b|burger|dining":
        "Food & Dining",
    r"grocery|groceries|supermarket|dmart|mart\b|kirana":
        "Groceries",
    r"petrol|diesel|fuel|iocl|hpcl|bpcl|indian\s*oil|bharat\s*petroleum|shell":
        "Fuel",
    r"metro|railway|taxi|\bcabs?\b|parking|\btoll\b|fastag":
        "Transportation",
    r"electricity|water\s*bill|gas\s*bill|broadband|internet\s*bill|recharge|postpaid|\bdth\b":
        "Bills & Utilities",
    r"pharmacy|pharmeasy|1mg|netmeds|apollo|hospital|clinic|medical|diagnostic":
        "Healthcare",
    r"udemy|coursera|unacademy|byju|school|college|tuition|kindle":
        "Education",
    r"insurance|premium":
        "Insurance",
    r"mutual\s*fund|\bsip\b|demat|shares|stocks":
        "Investments",
    r"\brent\b|landlord|maintenance":
        "Rent",
}

# Checked only for credits, ahead of CATEGORY_RULES
CREDIT_CATEGORY_RULES = {
    r"salary|payroll|stipend": "Income",
}

DEFAULT_CATEGORY = "Other"
INCOME_CATEGORY = "Income"
