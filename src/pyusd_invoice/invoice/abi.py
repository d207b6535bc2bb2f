from eth_utils import keccak

ERC20_APPROVE_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "spender", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

PAYMENT_ROUTER_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "token", "type": "address"},
            {"internalType": "address", "name": "merchant", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "bytes32", "name": "invoiceId", "type": "bytes32"},
            {"internalType": "uint256", "name": "expiresAt", "type": "uint256"},
        ],
        "name": "pay",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "bytes32", "name": "invoiceId", "type": "bytes32"},
            {"indexed": True, "internalType": "address", "name": "merchant", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "payer", "type": "address"},
            {"indexed": False, "internalType": "address", "name": "token", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "timestamp", "type": "uint256"},
        ],
        "name": "PaymentReceived",
        "type": "event",
    },
]

PAYMENT_RECEIVED_SIGNATURE = (
    "PaymentReceived(bytes32,address,address,address,uint256,uint256)"
)
PAYMENT_RECEIVED_TOPIC = "0x" + keccak(text=PAYMENT_RECEIVED_SIGNATURE).hex()
PAYMENT_RECEIVED_DATA_TYPES = ["address", "uint256", "uint256"]
