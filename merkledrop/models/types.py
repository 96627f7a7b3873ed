from typing import Literal, Any

# type aliases for clarity
EthereumAddress = str
BigNumber = str
GraphQL_Response = dict[Literal["data"], Any]

# lowercase address -> raw token amount, always non-negative integers
BalanceMap = dict[EthereumAddress, int]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
