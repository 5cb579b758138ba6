# verification_keys.py
"""
Verification keys fixed at deployment.

REDEEM_VERIFICATION_KEY is the key of the deployed full-redemption circuit
(6 public signals: commitment output + 5 inputs), in snarkjs layout: G2
coordinates are [real, imaginary].

The partial redemption key has no deployed counterpart shipped here; point
`partial_redeem_key_path` in the pool configuration at the snarkjs
verification_key.json produced for that circuit.
"""

from groth16_verifier import VerificationKey

REDEEM_VERIFICATION_KEY_JSON = {
    "protocol": "groth16",
    "curve": "bn128",
    "nPublic": 6,
    "vk_alpha_1": [
        "20491192805390485299153009773594534940189261866228447918068658471970481763042",
        "9383485363053290200918347156157836566562967994039712273449902621266178545958",
        "1",
    ],
    "vk_beta_2": [
        ["6375614351688725206403948262868962793625744043794305715222011528459656738731",
         "4252822878758300859123897981450591353533073413197771768651442665752259397132"],
        ["10505242626370262277552901082094356697409835680220590971873171140371331206856",
         "21847035105528745403288232691147584728191162732299865338377159692350059136679"],
        ["1", "0"],
    ],
    "vk_gamma_2": [
        ["10857046999023057135944570762232829481370756359578518086990519993285655852781",
         "11559732032986387107991004021392285783925812861821192530917403151452391805634"],
        ["8495653923123431417604973247489272438418190587263600148770280649306958101930",
         "4082367875863433681332203403145435568316851327593401208105741076214120093531"],
        ["1", "0"],
    ],
    "vk_delta_2": [
        ["8583081352743229799300385965312194134924660539175052034339807229471068507088",
         "20350888953504529292581957091747121845563752736971104059618323202218945714590"],
        ["11465217057375663758956123966589569771281571929934660615304689272071623139794",
         "2592085192013015013867798842170414597918537878369062236649848723791766887621"],
        ["1", "0"],
    ],
    "IC": [
        ["4660105224062536442592866842932767992502719645364308146262623643842326122865",
         "17276901730849178086213024785125128610553839494895313238582016803949795804802", "1"],
        ["10320827842497404403725324583763518947938473681109509213221447686170297527349",
         "6187173621915260736338747049934887844961698620531672792634685378438750676349", "1"],
        ["17542082800098777139901493985535836451893342617951008250429429064246556539398",
         "13627564828478472787962950403094034729954196587517178410134804019198739094179", "1"],
        ["9539374540367541168128243720672631410190128354841127145109735248299159914024",
         "14404186048576416489427444347784772541493914545749661367331342876857874070171", "1"],
        ["1743148767838639168062519156339511069182684664034038434564582669398850074469",
         "10782048529733657836688691187298319781562120235098775243385721026535854273587", "1"],
        ["6306198342163219331115614665632367283309042802375632509921127761862511259523",
         "12748624647856286760174855962829479938531149270253081805613420859213557746483", "1"],
        ["20629243252197495532357678917970863049585519289991248466635865876780586859068",
         "10914819839403061375513758084743037691038967452577598178075977991459989620682", "1"],
    ],
}

REDEEM_VERIFICATION_KEY = VerificationKey.from_snarkjs(REDEEM_VERIFICATION_KEY_JSON)
