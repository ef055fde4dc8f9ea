DOMAIN = "escpos_receipt"

# Configuration keys
CONF_TIMEOUT_MS = "timeout_ms"
CONF_BUSY_POLICY = "busy_policy"
CONF_BAUDRATE = "baudrate"

# Default values
DEFAULT_TIMEOUT_MS = 3000
DEFAULT_WRITE_TIMEOUT_MS = 10000
DEFAULT_BAUDRATE = 9600

MIN_TIMEOUT_MS = 100
MAX_TIMEOUT_MS = 300000

# What a second job does when its printer is already held by another job
BUSY_POLICY_FAIL = "fail"
BUSY_POLICY_WAIT = "wait"
BUSY_POLICIES: list[str] = [BUSY_POLICY_FAIL, BUSY_POLICY_WAIT]
DEFAULT_BUSY_POLICY = BUSY_POLICY_FAIL

BAUDRATE_CHOICES: list[int] = [9600, 19200, 38400, 57600, 115200]

CONNECTION_TYPE_SERIAL = "serial"
CONNECTION_TYPE_USB = "usb"
CONNECTION_TYPES: list[str] = [CONNECTION_TYPE_SERIAL, CONNECTION_TYPE_USB]

USB_ADDRESS_PREFIX = "usb"

# USB device/interface class for printers
USB_CLASS_PRINTER = 7

# Known thermal printer vendors; many of these report a vendor-specific
# interface class instead of the printer class.
THERMAL_PRINTER_VENDORS: dict[int, str] = {
    0x0404: "NCR Corp",
    0x0416: "Winbond (generic POS-58/80)",
    0x04B8: "Seiko Epson Corp",
    0x04C5: "Fujitsu",
    0x0519: "Star Micronics",
    0x0DD4: "Custom Engineering",
    0x0FE6: "Generic POS printers",
    0x1504: "Bixolon",
    0x154F: "SNBC",
    0x1D90: "Citizen",
    0x2730: "Citizen",
}

SERVICE_LIST_DEVICES = "list_devices"
SERVICE_TEST_CONNECTION = "test_connection"
SERVICE_PRINT_RECEIPT = "print_receipt"

# Request fields (names follow the host application's contract)
ATTR_CONFIG = "config"
ATTR_CONTENT = "content"
ATTR_TYPE = "type"
ATTR_INTERFACE = "interface"
ATTR_CONNECTION_TYPE = "connectionType"
ATTR_TIMEOUT_MS = "timeoutMs"
ATTR_LOGO = "logo"
ATTR_HEADER = "header"
ATTR_ITEMS = "items"
ATTR_NAME = "name"
ATTR_QTY = "qty"
ATTR_PRICE = "price"
ATTR_TOTAL = "total"
ATTR_FOOTER = "footer"

# Result messages
MSG_TEST_OK = "Printer test successful!"
MSG_TEST_OK_USB = "USB printer test successful!"
MSG_PRINT_OK = "Receipt printed successfully!"
MSG_PRINT_OK_USB = "Receipt printed successfully to USB printer!"
MSG_NOT_CONNECTED = "Printer not connected."
MSG_PARTIAL_WRITE = "The printer may have printed part of the receipt."
