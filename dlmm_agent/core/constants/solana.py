USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
JUP_MINT = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"
WSOL_MINT = "So11111111111111111111111111111111111111112"

NATIVE_MINTS = {WSOL_MINT}
